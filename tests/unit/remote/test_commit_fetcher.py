"""Tests for paginated, quota-aware remote commit fetching."""

import asyncio

import pytest

from code_attribution.config import RemoteConfig
from code_attribution.errors import (
    AnalysisCancelledError,
    EmptyRepositoryError,
    NoNonMergeCommitsError,
    RateLimitExceededError,
    RateLimitLowError,
)
from code_attribution.remote import FetchOptions


def _listing_only():
    return FetchOptions(hydrate=False)


class TestPagination:
    @pytest.mark.asyncio
    async def test_three_pages_for_237_commits(self, fake_api, build_fetcher, make_payload):
        fake_api.commits = [make_payload(i) for i in range(237)]

        result = await build_fetcher().fetch_commits("octo", "demo", options=_listing_only())

        assert len(fake_api.listing_calls) == 3
        assert [int(r.url.params["page"]) for r in fake_api.listing_calls] == [1, 2, 3]
        assert len(result.commits) == 237
        assert result.listed_count == 237
        assert result.has_more is False
        assert result.next_offset == 237

    @pytest.mark.asyncio
    async def test_merges_are_filtered(self, fake_api, build_fetcher, make_payload):
        merge_indices = {3, 50, 101, 150, 236}
        fake_api.commits = [make_payload(i, merge=i in merge_indices) for i in range(237)]

        result = await build_fetcher().fetch_commits("octo", "demo", options=_listing_only())

        assert len(result.commits) == 237 - len(merge_indices)
        assert not any(c.is_merge for c in result.commits)

    @pytest.mark.asyncio
    async def test_exact_page_multiple_makes_one_extra_call(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i) for i in range(200)]

        result = await build_fetcher().fetch_commits("octo", "demo", options=_listing_only())

        assert len(fake_api.listing_calls) == 3
        assert len(result.commits) == 200

    @pytest.mark.asyncio
    async def test_branch_and_dates_forwarded(self, fake_api, build_fetcher, make_payload):
        fake_api.commits = [make_payload(0)]

        await build_fetcher().fetch_commits(
            "octo",
            "demo",
            branch="develop",
            options=FetchOptions(since="2024-01-01", until="2024-02-01", hydrate=False),
        )

        params = fake_api.listing_calls[0].url.params
        assert params["sha"] == "develop"
        assert params["since"] == "2024-01-01"
        assert params["until"] == "2024-02-01"
        assert params["per_page"] == "100"

    @pytest.mark.asyncio
    async def test_max_commits_cap_sets_continuation(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i) for i in range(150)]

        result = await build_fetcher().fetch_commits(
            "octo", "demo", options=FetchOptions(max_commits=120, hydrate=False)
        )

        assert len(result.commits) == 120
        assert result.has_more is True
        assert result.next_offset == 120

    @pytest.mark.asyncio
    async def test_offset_resumes_where_previous_fetch_stopped(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i) for i in range(150)]

        result = await build_fetcher().fetch_commits(
            "octo", "demo", options=FetchOptions(offset=120, hydrate=False)
        )

        assert [int(r.url.params["page"]) for r in fake_api.listing_calls] == [2]
        assert [c.sha for c in result.commits] == [p["sha"] for p in fake_api.commits[120:]]
        assert result.has_more is False
        assert result.next_offset == 150

    @pytest.mark.asyncio
    async def test_offset_past_end_is_empty_not_error(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i) for i in range(10)]

        result = await build_fetcher().fetch_commits(
            "octo", "demo", options=FetchOptions(offset=10, hydrate=False)
        )

        assert result.commits == []
        assert result.has_more is False


class TestEmptyRepositories:
    @pytest.mark.asyncio
    async def test_conflict_status_means_empty_repository(self, fake_api, build_fetcher):
        fake_api.listing_status = 409

        with pytest.raises(EmptyRepositoryError) as exc_info:
            await build_fetcher().fetch_commits("octo", "demo")

        assert exc_info.value.code == "EMPTY_REPOSITORY"

    @pytest.mark.asyncio
    async def test_empty_listing_means_empty_repository(self, fake_api, build_fetcher):
        with pytest.raises(EmptyRepositoryError):
            await build_fetcher().fetch_commits("octo", "demo")

    @pytest.mark.asyncio
    async def test_only_merges_is_a_distinct_error(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i, merge=True) for i in range(5)]

        with pytest.raises(NoNonMergeCommitsError) as exc_info:
            await build_fetcher().fetch_commits("octo", "demo")

        assert exc_info.value.code == "NO_NON_MERGE_COMMITS"

    @pytest.mark.asyncio
    async def test_merges_kept_when_not_excluded(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i, merge=True) for i in range(5)]

        result = await build_fetcher().fetch_commits(
            "octo", "demo", options=FetchOptions(exclude_merges=False, hydrate=False)
        )

        assert len(result.commits) == 5

    @pytest.mark.asyncio
    async def test_invalid_items_are_skipped_with_warning(
        self, fake_api, build_fetcher, make_payload
    ):
        broken = {"sha": "f" * 40, "commit": {"author": None}}
        fake_api.commits = [make_payload(0), broken]

        result = await build_fetcher().fetch_commits("octo", "demo", options=_listing_only())

        assert len(result.commits) == 1
        assert any("Invalid commit data" in w for w in result.warnings)


class TestQuota:
    @pytest.mark.asyncio
    async def test_low_quota_stops_before_listing(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(0)]
        fake_api.remaining = 50

        with pytest.raises(RateLimitLowError) as exc_info:
            await build_fetcher().fetch_commits("octo", "demo")

        assert exc_info.value.remaining == 50
        assert exc_info.value.code == "RATE_LIMIT_LOW"
        assert fake_api.listing_calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_rejection_surfaces(self, fake_api, build_fetcher):
        fake_api.listing_status = 403
        fake_api.listing_body = {"message": "API rate limit exceeded for user ID 1."}

        with pytest.raises(RateLimitExceededError):
            await build_fetcher().fetch_commits("octo", "demo")

    @pytest.mark.asyncio
    async def test_quota_checked_from_headers_after_first_call(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(i) for i in range(150)]

        await build_fetcher().fetch_commits("octo", "demo", options=_listing_only())

        rate_limit_calls = [r for r in fake_api.requests if r.url.path == "/rate_limit"]
        assert len(rate_limit_calls) == 1


class TestHydration:
    @pytest.mark.asyncio
    async def test_details_fill_in_line_stats(self, fake_api, build_fetcher, make_payload):
        fake_api.commits = [
            make_payload(
                i,
                stats={"additions": 10 + i, "deletions": i},
                files=[
                    {"filename": f"src/f{i}.py", "additions": 10 + i, "deletions": i, "changes": 10 + 2 * i}
                ],
            )
            for i in range(3)
        ]

        result = await build_fetcher().fetch_commits("octo", "demo")

        assert result.hydrated_count == 3
        assert [c.additions for c in result.commits] == [10, 11, 12]
        assert [c.deletions for c in result.commits] == [0, 1, 2]
        assert result.commits[1].files[0].filename == "src/f1.py"

    @pytest.mark.asyncio
    async def test_hydration_is_capped(self, fake_api, make_payload, build_fetcher):
        fake_api.commits = [
            make_payload(i, stats={"additions": 5, "deletions": 1}) for i in range(5)
        ]
        config = RemoteConfig(
            page_delay=0, inter_batch_delay=0, max_detailed_fetches=3, hydration_batch_size=2
        )

        result = await build_fetcher(config).fetch_commits("octo", "demo")

        assert len(fake_api.detail_calls) == 3
        assert result.hydrated_count == 3
        assert [c.additions for c in result.commits] == [5, 5, 5, 0, 0]
        assert any(w.startswith("Large commit set (5)") for w in result.warnings)

    @pytest.mark.asyncio
    async def test_failed_detail_keeps_commit_with_warning(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [
            make_payload(i, stats={"additions": 3, "deletions": 3}) for i in range(3)
        ]
        failing_sha = fake_api.commits[1]["sha"]
        fake_api.failing_details = {failing_sha}

        result = await build_fetcher().fetch_commits("octo", "demo")

        assert len(result.commits) == 3
        assert result.hydrated_count == 2
        assert result.commits[1].additions == 0
        assert any(
            w.startswith(f"Failed to fetch stats for commit {failing_sha}")
            for w in result.warnings
        )


class TestProgressAndCancellation:
    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [
            make_payload(i, stats={"additions": 1, "deletions": 0}) for i in range(237)
        ]
        seen = []

        async def on_progress(message, percent):
            seen.append(percent)

        await build_fetcher().fetch_commits("octo", "demo", on_progress=on_progress)

        assert seen == sorted(seen)
        assert seen[-1] == 100
        assert all(0 <= p <= 100 for p in seen)

    @pytest.mark.asyncio
    async def test_sync_progress_callback_supported(
        self, fake_api, build_fetcher, make_payload
    ):
        fake_api.commits = [make_payload(0)]
        seen = []

        await build_fetcher().fetch_commits(
            "octo",
            "demo",
            options=_listing_only(),
            on_progress=lambda message, percent: seen.append(percent),
        )

        assert seen[-1] == 100

    @pytest.mark.asyncio
    async def test_cancel_event_stops_fetch(self, fake_api, build_fetcher, make_payload):
        fake_api.commits = [make_payload(i) for i in range(10)]
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(AnalysisCancelledError):
            await build_fetcher().fetch_commits(
                "octo", "demo", options=FetchOptions(cancel_event=cancel)
            )

        assert fake_api.listing_calls == []
