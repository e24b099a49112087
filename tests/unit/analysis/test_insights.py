"""Tests for activity insights."""

import pytest

from code_attribution.analysis.insights import (
    build_file_contributors,
    commit_type,
    extract_basic_insights,
    extract_insights,
)
from code_attribution.analysis.timeline import build_repository_timeline
from code_attribution.models import ActiveDay, ActiveHour, FileChange, QuietPeriod


def _file(name, additions=1):
    return FileChange(filename=name, additions=additions, deletions=0, changes=additions)


@pytest.fixture
def commits(make_commit):
    return [
        make_commit(
            author_date="2025-01-06T10:00:00Z",
            message="feat: add api",
            additions=10,
            deletions=0,
            files=[_file("src/a.py")],
        ),
        make_commit(
            author_date="2025-01-06T20:00:00Z",
            message="Feat: more",
            additions=1,
            deletions=1,
        ),
        make_commit(
            author_date="2025-01-11T09:00:00Z",
            message="random change\n\nwith a body",
            additions=0,
            deletions=0,
        ),
        make_commit(
            author_name="Bob",
            author_email="bob@example.com",
            author_date="2025-01-07T14:00:00Z",
            message="fix(core): bug",
            additions=30,
            deletions=20,
            files=[_file("src/a.py")],
        ),
        make_commit(
            author_name="Carol",
            author_email="carol@example.com",
            author_date="2025-01-07T15:00:00Z",
            message="docs: readme",
            additions=5,
            deletions=0,
            files=[_file("docs/c.md")],
        ),
    ]


class TestCommitType:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("feat: x", "feat"),
            ("FIX: x", "fix"),
            ("refactor(parser): x", "refactor"),
            ("revert: x", "revert"),
            ("feature: x", "other"),
            ("Update README", "other"),
        ],
    )
    def test_conventional_prefixes(self, message, expected):
        assert commit_type(message) == expected


class TestExtractInsights:
    def test_full_insights(self, commits):
        users = build_repository_timeline(commits).users

        insights = extract_insights(users, commits)

        # Monday and Tuesday tie on two commits; the earlier weekday wins
        assert insights.most_active_day == ActiveDay(day="Monday", commits=2)
        assert insights.most_active_hour == ActiveHour(hour=9, commits=1)
        assert insights.quietest_period == QuietPeriod(start="2025-01-07", end="2025-01-11")
        assert insights.solo_contributors == ("Carol",)
        assert insights.largest_commit.author == "Bob"
        assert insights.largest_commit.additions == 30
        assert [(t.type, t.count) for t in insights.common_commit_types] == [
            ("feat", 2),
            ("docs", 1),
            ("fix", 1),
            ("other", 1),
        ]
        assert insights.avg_commit_message_length == 12
        assert (insights.weekday_commits, insights.weekend_commits) == (4, 1)
        assert (insights.morning_commits, insights.evening_commits) == (4, 1)

    def test_explicit_file_contributors(self, commits):
        users = build_repository_timeline(commits).users

        insights = extract_insights(
            users, commits, file_contributors={"x.py": {"Alice", "Bob", "Carol"}}
        )

        assert insights.solo_contributors == ()

    def test_empty(self):
        insights = extract_insights([], [])

        assert insights.most_active_day == ActiveDay(day="Monday", commits=0)
        assert insights.most_active_hour == ActiveHour(hour=9, commits=0)
        assert insights.quietest_period is None
        assert insights.largest_commit is None
        assert insights.common_commit_types == ()
        assert insights.avg_commit_message_length == 0

    def test_consecutive_days_have_no_quiet_period(self, make_commit):
        commits = [
            make_commit(author_date="2025-01-06T10:00:00Z"),
            make_commit(author_date="2025-01-07T10:00:00Z"),
        ]

        insights = extract_insights(build_repository_timeline(commits).users, commits)

        assert insights.quietest_period is None

    def test_top_five_commit_types(self, make_commit):
        prefixes = ["feat", "fix", "docs", "style", "test", "chore", "ci"]
        commits = [make_commit(message=f"{p}: change") for p in prefixes]

        insights = extract_insights([], commits)

        assert len(insights.common_commit_types) == 5


class TestBasicInsights:
    def test_from_timeline_only(self, commits):
        users = build_repository_timeline(commits).users

        insights = extract_basic_insights(users)

        assert insights.most_active_day.day == "Monday"
        assert insights.most_active_hour == ActiveHour(hour=10, commits=0)
        assert insights.solo_contributors == ()
        assert insights.largest_commit is None
        assert insights.weekday_commits + insights.weekend_commits == 5


class TestFileContributors:
    def test_maps_files_to_display_names(self, commits):
        contributors = build_file_contributors(commits)

        assert contributors == {"src/a.py": {"Alice", "Bob"}, "docs/c.md": {"Carol"}}
