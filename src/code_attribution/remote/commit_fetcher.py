"""
Paginated, quota-aware commit retrieval from the hosted API.

Listing pages are requested one after another because each page decides
whether another is needed. The listing carries no line stats, so a bounded
hydration pass fetches commit details in small concurrent batches. Quota is
checked before every page and every batch, and fetching stops with
RateLimitLowError before the quota runs out.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..config import RemoteConfig
from ..errors import (
    AnalysisCancelledError,
    AttributionError,
    EmptyRepositoryError,
    InvalidCommitDataError,
    NoNonMergeCommitsError,
    RateLimitExceededError,
    RateLimitLowError,
)
from ..models import CommitRecord
from ..progress.channel import calculate_progress
from .github_client import GitHubCommitsClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], Union[None, Awaitable[None]]]

LISTING_WEIGHT = 0.8
HYDRATION_START = 80
HYDRATION_SPAN = 20


@dataclass
class FetchOptions:
    """Caller-supplied filters for one fetch."""

    since: Optional[str] = None
    until: Optional[str] = None
    max_commits: Optional[int] = None
    exclude_merges: bool = True
    offset: int = 0
    hydrate: bool = True
    cancel_event: Optional[asyncio.Event] = None


@dataclass
class FetchResult:
    """Commits kept by a fetch plus the continuation point."""

    commits: List[CommitRecord]
    listed_count: int
    has_more: bool
    next_offset: int
    hydrated_count: int = 0
    warnings: List[str] = field(default_factory=list)


class _ProgressReporter:
    """Forwards progress to the callback without ever going backwards."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._last = 0

    async def report(self, message: str, percent: int) -> None:
        if self._callback is None:
            return
        percent = max(self._last, min(100, percent))
        self._last = percent
        outcome = self._callback(message, percent)
        if inspect.isawaitable(outcome):
            await outcome


class RemoteCommitFetcher:
    """Fetches one branch's history with listing and hydration passes."""

    def __init__(
        self,
        client: GitHubCommitsClient,
        config: Optional[RemoteConfig] = None,
    ):
        self.client = client
        self.config = config or client.config

    async def fetch_commits(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        options: Optional[FetchOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchResult:
        """Fetch commits for ``branch``, hydrating up to the configured cap.

        Raises:
            EmptyRepositoryError: The repository has no commits
            NoNonMergeCommitsError: Every listed commit was a filtered merge
            RateLimitLowError: Remaining quota fell below the warning threshold
            AnalysisCancelledError: ``options.cancel_event`` was set
        """
        options = options or FetchOptions()
        reporter = _ProgressReporter(on_progress)
        max_commits = options.max_commits or self.config.max_commits
        page_size = self.config.page_size
        warnings: List[str] = []

        commits: List[CommitRecord] = []
        page = options.offset // page_size + 1
        skip = options.offset % page_size
        consumed = options.offset
        listed = 0
        merges_skipped = 0
        has_more = True
        stopped_at_cap = False

        while has_more:
            self._check_cancelled(options)
            await self._ensure_quota()

            estimated_total = min(max_commits, len(commits) + page_size)
            await reporter.report(
                f"Fetching commits (page {page})...",
                calculate_progress(len(commits), estimated_total, LISTING_WEIGHT),
            )

            items = await self.client.list_commits(
                owner,
                repo,
                branch=branch,
                page=page,
                per_page=page_size,
                since=options.since,
                until=options.until,
            )
            page_full = len(items) >= page_size
            items = items[skip:]
            skip = 0

            for item in items:
                if len(commits) >= max_commits:
                    stopped_at_cap = True
                    break
                consumed += 1
                listed += 1
                record = self._parse_listing_item(item, warnings)
                if record is None:
                    continue
                if options.exclude_merges and record.is_merge:
                    merges_skipped += 1
                    continue
                commits.append(record)

            if len(commits) >= max_commits and page_full:
                stopped_at_cap = True
            has_more = page_full and not stopped_at_cap
            page += 1

            if has_more and self.config.page_delay:
                await asyncio.sleep(self.config.page_delay)

        logger.info(
            f"Listed {listed} commits for {owner}/{repo}, kept {len(commits)} "
            f"(offset {options.offset})"
        )

        if not commits and options.offset == 0:
            if listed == 0:
                raise EmptyRepositoryError(
                    f"Repository {owner}/{repo} has no commits on the requested branch."
                )
            if merges_skipped:
                raise NoNonMergeCommitsError()
            raise InvalidCommitDataError("No valid commits to analyze.")

        hydrated = 0
        if options.hydrate and commits:
            await reporter.report("Fetching detailed commit statistics...", HYDRATION_START)
            hydrated = await self._hydrate(owner, repo, commits, options, reporter, warnings)

        await reporter.report("Commit fetching complete", 100)

        return FetchResult(
            commits=commits,
            listed_count=listed,
            has_more=stopped_at_cap,
            next_offset=consumed,
            hydrated_count=hydrated,
            warnings=warnings,
        )

    def _parse_listing_item(
        self, item: Any, warnings: List[str]
    ) -> Optional[CommitRecord]:
        try:
            return CommitRecord.from_github_payload(item)
        except InvalidCommitDataError as e:
            logger.warning(e.message)
            warnings.append(e.message)
            return None

    async def _hydrate(
        self,
        owner: str,
        repo: str,
        commits: List[CommitRecord],
        options: FetchOptions,
        reporter: _ProgressReporter,
        warnings: List[str],
    ) -> int:
        """Replace the first ``max_detailed_fetches`` commits with hydrated copies."""
        cap = min(len(commits), self.config.max_detailed_fetches)
        if len(commits) > cap:
            message = (
                f"Large commit set ({len(commits)}). Fetched detailed stats for the "
                f"first {cap} commits only; the rest are counted without line stats."
            )
            logger.warning(message)
            warnings.append(message)

        batch_size = self.config.hydration_batch_size
        hydrated = 0
        for start in range(0, cap, batch_size):
            self._check_cancelled(options)
            await self._ensure_quota()

            indices = range(start, min(start + batch_size, cap))
            tasks = [
                asyncio.ensure_future(self._hydrate_one(owner, repo, commits[i]))
                for i in indices
            ]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                raise

            for i, (record, warning) in zip(indices, results):
                commits[i] = record
                if warning is None:
                    hydrated += 1
                else:
                    warnings.append(warning)

            done = indices.stop
            await reporter.report(
                f"Fetching detailed stats ({done}/{len(commits)})...",
                min(99, HYDRATION_START + calculate_progress(done, cap, HYDRATION_SPAN / 100)),
            )

            if done < cap and self.config.inter_batch_delay:
                await asyncio.sleep(self.config.inter_batch_delay)

        return hydrated

    async def _hydrate_one(
        self, owner: str, repo: str, record: CommitRecord
    ) -> Tuple[CommitRecord, Optional[str]]:
        try:
            detail = await self.client.get_commit(owner, repo, record.sha)
            detailed = CommitRecord.from_github_payload(detail)
        except (RateLimitExceededError, RateLimitLowError, AnalysisCancelledError):
            raise
        except AttributionError as e:
            message = f"Failed to fetch stats for commit {record.sha}: {e.message}"
            logger.warning(message)
            return record, message

        update: Dict[str, Any] = {
            "additions": detailed.additions,
            "deletions": detailed.deletions,
            "files": detailed.files,
        }
        return record.model_copy(update=update), None

    async def _ensure_quota(self) -> None:
        status = self.client.rate_limit
        if status is None:
            status = await self.client.get_rate_limit()
        if status.remaining < self.config.rate_limit_warning_threshold:
            logger.warning(
                f"Rate limit low: {status.remaining} requests remaining, stopping fetch"
            )
            raise RateLimitLowError(status.remaining, status.reset_at)

    @staticmethod
    def _check_cancelled(options: FetchOptions) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise AnalysisCancelledError("Commit fetch was cancelled.")
