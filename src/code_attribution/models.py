"""Data model for attribution results.

``CommitRecord`` is the validated input to every aggregation step and is a
frozen pydantic model so malformed commits are rejected at the boundary.
Results are frozen dataclasses built once by the pass that computes them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidCommitDataError
from .utils.dates import parse_utc


# ---------------------------------------------------------------------------
# Commit input
# ---------------------------------------------------------------------------


class FileChange(BaseModel):
    """Per-file line stats of one commit."""

    model_config = ConfigDict(frozen=True)

    filename: str
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changes: int = Field(default=0, ge=0)


class CommitRecord(BaseModel):
    """One historical commit from local history or the hosted API."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(min_length=1)
    author_name: str = ""
    author_email: str = ""
    author_date: Optional[datetime] = None
    message: str = ""
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    parent_shas: Tuple[str, ...] = ()
    platform_author_id: Optional[int] = None
    platform_login: Optional[str] = None
    avatar_url: Optional[str] = None
    files: Tuple[FileChange, ...] = ()

    @field_validator("author_email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> str:
        """Lower-case and trim; a missing email becomes empty."""
        if v is None:
            return ""
        return str(v).strip().lower()

    @field_validator("author_name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("author_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Optional[datetime]:
        """Accept ISO strings or datetimes; unparseable dates become None."""
        if v is None or isinstance(v, (str, datetime)):
            return parse_utc(v)
        return None

    @property
    def is_merge(self) -> bool:
        return len(self.parent_shas) >= 2

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]

    @property
    def display_author(self) -> str:
        return self.platform_login or self.author_name or "Unknown"

    @classmethod
    def from_github_payload(cls, payload: Mapping[str, Any]) -> "CommitRecord":
        """Validate a raw hosted-API commit object and convert it.

        Raises:
            InvalidCommitDataError: If the payload does not match the schema
        """
        try:
            parsed = GitHubCommitPayload.model_validate(payload)
        except ValidationError as e:
            sha = payload.get("sha") if isinstance(payload, Mapping) else None
            raise InvalidCommitDataError(
                f"Invalid commit data: {sha or '<unknown>'} ({e.error_count()} validation errors)"
            ) from e
        return parsed.to_record()


class GitHubCommitAuthorInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    date: Optional[str] = None


class GitHubCommitDetail(BaseModel):
    author: Optional[GitHubCommitAuthorInfo] = None
    message: str


class GitHubAccount(BaseModel):
    login: str
    id: int
    avatar_url: Optional[str] = None


class GitHubCommitStats(BaseModel):
    additions: int = Field(ge=0)
    deletions: int = Field(ge=0)
    total: int = Field(default=0, ge=0)


class GitHubFile(BaseModel):
    filename: str
    additions: int = Field(ge=0)
    deletions: int = Field(ge=0)
    changes: int = Field(ge=0)


class GitHubParent(BaseModel):
    sha: str


class GitHubCommitPayload(BaseModel):
    """Schema of a commit object returned by the hosted API."""

    sha: str = Field(min_length=1)
    commit: GitHubCommitDetail
    author: Optional[GitHubAccount] = None
    stats: Optional[GitHubCommitStats] = None
    files: Optional[List[GitHubFile]] = None
    parents: Optional[List[GitHubParent]] = None

    def to_record(self) -> CommitRecord:
        info = self.commit.author or GitHubCommitAuthorInfo()
        return CommitRecord(
            sha=self.sha,
            author_name=info.name,
            author_email=info.email,
            author_date=info.date,
            message=self.commit.message,
            additions=self.stats.additions if self.stats else 0,
            deletions=self.stats.deletions if self.stats else 0,
            parent_shas=tuple(p.sha for p in self.parents or []),
            platform_author_id=self.author.id if self.author else None,
            platform_login=self.author.login if self.author else None,
            avatar_url=self.author.avatar_url if self.author else None,
            files=tuple(
                FileChange(
                    filename=f.filename,
                    additions=f.additions,
                    deletions=f.deletions,
                    changes=f.changes,
                )
                for f in self.files or []
            ),
        )


# ---------------------------------------------------------------------------
# Blame and local commit stats
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthorAttribution:
    """Surviving lines owned by one author."""

    name: str
    email: Optional[str]
    lines: int


@dataclass(frozen=True)
class BlameResult:
    authors: Tuple[AuthorAttribution, ...]
    files_processed: int
    total_lines: int
    files_skipped: int = 0
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CommitAuthorStats:
    name: str
    email: Optional[str]
    commits: int
    additions: int
    deletions: int


@dataclass(frozen=True)
class TimelineEntry:
    date: datetime
    author: str
    commits: int = 1


@dataclass(frozen=True)
class CommitStatsResult:
    authors: Tuple[CommitAuthorStats, ...]
    timeline: Tuple[TimelineEntry, ...]
    commits: Tuple[CommitRecord, ...] = ()


# ---------------------------------------------------------------------------
# Contributor aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContributorStats:
    canonical_key: str
    name: str
    email: str
    emails: Tuple[str, ...]
    platform_id: Optional[int]
    platform_login: Optional[str]
    avatar_url: Optional[str]
    commit_count: int
    additions: int
    deletions: int
    net_lines: int
    first_commit_date: Optional[str]
    last_commit_date: Optional[str]
    active_days: int
    merge_commit_count: int
    is_merge_committer: bool


@dataclass(frozen=True)
class CommitMessage:
    sha: str
    author: str
    date: str
    message: str


@dataclass(frozen=True)
class CommitTime:
    sha: str
    author: str
    date: str
    timestamp: int


@dataclass(frozen=True)
class FileByAuthor:
    author: str
    filename: str
    additions: int
    deletions: int
    changes: int


@dataclass(frozen=True)
class MergeCommit:
    sha: str
    author: str
    date: str
    message: str
    parent_count: int


@dataclass(frozen=True)
class DateRange:
    start: Optional[str]
    end: Optional[str]


@dataclass(frozen=True)
class AnalysisMetadata:
    total_commits: int
    analyzed_commits: int
    total_contributors: int
    date_range: DateRange


@dataclass(frozen=True)
class AnalysisResult:
    contributors: Tuple[ContributorStats, ...]
    commit_messages: Tuple[CommitMessage, ...]
    commit_times: Tuple[CommitTime, ...]
    files_by_author: Tuple[FileByAuthor, ...]
    merges: Tuple[MergeCommit, ...]
    warnings: Tuple[str, ...]
    metadata: AnalysisMetadata


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyMetric:
    date: str
    user_id: str
    user_name: str
    commits: int
    additions: int
    deletions: int
    net_lines: int


@dataclass(frozen=True)
class WeeklyMetric:
    week_start: str
    week_label: str
    commits: int
    additions: int
    deletions: int
    net_lines: int


@dataclass(frozen=True)
class UserTimelineData:
    user_id: str
    user_name: str
    email: Optional[str]
    avatar_url: Optional[str]
    first_commit_date: str
    last_commit_date: str
    daily_metrics: Tuple[DailyMetric, ...]
    weekly_metrics: Tuple[WeeklyMetric, ...]
    total_commits: int
    total_additions: int
    total_deletions: int
    total_net_lines: int


@dataclass(frozen=True)
class RepositoryTimeline:
    repo_first_commit: Optional[str]
    repo_last_commit: Optional[str]
    users: Tuple[UserTimelineData, ...]
    total_commits: int
    total_additions: int
    total_deletions: int
    total_net_lines: int


@dataclass(frozen=True)
class AggregatedPeriod:
    date: str
    label: str
    commits: int
    additions: int
    deletions: int
    net_lines: int
    top_contributor: Optional[str] = None


@dataclass(frozen=True)
class DailyCount:
    date: str
    count: int


@dataclass(frozen=True)
class WeeklyStat:
    week: str
    commits: int
    net_lines: int


@dataclass(frozen=True)
class LifetimeStats:
    commits: int
    additions: int
    deletions: int
    net_lines: int
    first_commit: Optional[str]
    last_commit: Optional[str]


@dataclass(frozen=True)
class UserContribution:
    user_id: str
    user_name: str
    email: Optional[str]
    avatar_url: Optional[str]
    lifetime_stats: LifetimeStats
    daily_commits: Tuple[DailyCount, ...]
    daily_additions: Tuple[DailyCount, ...]
    daily_deletions: Tuple[DailyCount, ...]
    daily_net_lines: Tuple[DailyCount, ...]
    weekly_stats: Tuple[WeeklyStat, ...]


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActiveDay:
    day: str
    commits: int


@dataclass(frozen=True)
class ActiveHour:
    hour: int
    commits: int


@dataclass(frozen=True)
class QuietPeriod:
    start: str
    end: str


@dataclass(frozen=True)
class LargestCommit:
    sha: str
    author: str
    additions: int
    deletions: int


@dataclass(frozen=True)
class CommitTypeCount:
    type: str
    count: int


@dataclass(frozen=True)
class Insights:
    most_active_day: ActiveDay
    most_active_hour: ActiveHour
    quietest_period: Optional[QuietPeriod]
    solo_contributors: Tuple[str, ...]
    largest_commit: Optional[LargestCommit]
    common_commit_types: Tuple[CommitTypeCount, ...]
    avg_commit_message_length: int
    weekday_commits: int
    weekend_commits: int
    morning_commits: int
    evening_commits: int


@dataclass
class RemoteAnalysis:
    """Everything the remote pipeline hands to the observer on completion."""

    analysis: AnalysisResult
    timeline: RepositoryTimeline
    user_contributions: List[UserContribution] = field(default_factory=list)
    insights: Optional[Insights] = None
    warnings: List[str] = field(default_factory=list)
