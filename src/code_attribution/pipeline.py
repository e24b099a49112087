"""
End-to-end attribution runs.

``analyze_local_repository`` combines both evidence sources of a local
clone. ``run_remote_analysis`` is the single coordinating task of a remote
run: it owns the progress channel, drives the fetcher and emits exactly one
terminal event.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .analysis.aggregation import aggregate_all_users_to_weekly
from .analysis.contributions import analyze_commits
from .analysis.identity import is_bot
from .analysis.insights import extract_insights
from .analysis.timeline import build_repository_timeline, build_user_contributions
from .config import Config
from .errors import AnalysisCancelledError, AttributionError
from .git.blame import BlameAttributionEngine
from .git.commits import CommitStatsEngine, summarize_commits
from .models import (
    AnalysisResult,
    BlameResult,
    CommitRecord,
    CommitStatsResult,
    Insights,
    RemoteAnalysis,
    RepositoryTimeline,
)
from .progress.channel import ChannelClosedError, ProgressChannel
from .remote.commit_fetcher import FetchOptions, RemoteCommitFetcher
from .utils.exception_logger import record_exception
from .utils.git_runner import ensure_git_repository

logger = logging.getLogger(__name__)

FETCH_WEIGHT = 0.8
GENERIC_FAILURE_MESSAGE = "Failed to perform analysis"


@dataclass(frozen=True)
class LocalAnalysis:
    """Blame ownership and history-derived reports for one local clone."""

    blame: BlameResult
    commit_stats: CommitStatsResult
    analysis: AnalysisResult
    timeline: RepositoryTimeline
    insights: Insights


def _without_bots(
    commits: List[CommitRecord], include_bots: bool, config: Config
) -> List[CommitRecord]:
    if include_bots:
        return commits
    patterns = config.analysis.bot_patterns
    return [c for c in commits if not is_bot(c.author_name, c.author_email, patterns)]


def analyze_local_repository(
    repo_path: Union[str, Path],
    config: Optional[Config] = None,
    include_bots: Optional[bool] = None,
) -> LocalAnalysis:
    """Run blame, commit stats, contributor aggregation and insights locally."""
    config = config or Config()
    if include_bots is None:
        include_bots = config.analysis.include_bots
    path = ensure_git_repository(repo_path)

    blame = BlameAttributionEngine(config.blame, config.git).compute(path)

    engine = CommitStatsEngine(config.commit_stats, config.git)
    records = engine.read_commits(path)
    commit_stats = summarize_commits(records)

    analysis = analyze_commits(records, include_bots=include_bots, config=config.analysis)
    kept = _without_bots(records, include_bots, config)
    timeline = build_repository_timeline(kept)
    insights = extract_insights(timeline.users, kept)

    logger.info(
        f"Local analysis of {path}: {blame.total_lines} blamed lines, "
        f"{len(records)} commits, {len(analysis.contributors)} contributors"
    )
    return LocalAnalysis(
        blame=blame,
        commit_stats=commit_stats,
        analysis=analysis,
        timeline=timeline,
        insights=insights,
    )


async def run_remote_analysis(
    channel: ProgressChannel,
    fetcher: RemoteCommitFetcher,
    owner: str,
    repo: str,
    branch: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    offset: int = 0,
    include_bots: bool = False,
    config: Optional[Config] = None,
) -> Optional[RemoteAnalysis]:
    """Fetch, aggregate and stream one remote analysis through ``channel``.

    Must run inside the task that owns ``channel``. Returns the result that
    was sent in the ``complete`` event, or None when the run failed or the
    observer cancelled. Cancelling the task itself still closes the stream with
    a ``CANCELLED`` error before the cancellation propagates.
    """
    config = config or Config()
    try:
        await channel.progress("Starting analysis...", 0)

        async def forward(message: str, percent: int) -> None:
            await channel.progress(message, percent * FETCH_WEIGHT)

        fetched = await fetcher.fetch_commits(
            owner,
            repo,
            branch=branch,
            options=FetchOptions(
                since=since,
                until=until,
                offset=offset,
                cancel_event=channel.cancel_event,
            ),
            on_progress=forward,
        )
        commits = _without_bots(fetched.commits, include_bots, config)

        await channel.progress("Processing timeline data...", 82)
        timeline = build_repository_timeline(commits)

        await channel.progress("Aggregating weekly metrics...", 85)
        timeline = dataclasses.replace(
            timeline, users=tuple(aggregate_all_users_to_weekly(timeline.users))
        )

        await channel.progress("Extracting user contributions...", 90)
        contributions = build_user_contributions(timeline)

        await channel.progress("Generating insights...", 95)
        insights = extract_insights(timeline.users, commits)
        analysis = analyze_commits(
            fetched.commits, include_bots=include_bots, config=config.analysis
        )

        result = RemoteAnalysis(
            analysis=analysis,
            timeline=timeline,
            user_contributions=contributions,
            insights=insights,
            warnings=list(fetched.warnings) + list(analysis.warnings),
        )
        await channel.complete(
            result, has_more=fetched.has_more, next_offset=fetched.next_offset
        )
        return result

    except AnalysisCancelledError:
        logger.info(f"Analysis of {owner}/{repo} cancelled by observer")
        if not channel.closed and not channel.cancelled:
            await channel.fail(AnalysisCancelledError())
        return None
    except asyncio.CancelledError:
        logger.info(f"Analysis of {owner}/{repo} cancelled by host")
        if not channel.closed and not channel.cancelled:
            await channel.fail(AnalysisCancelledError())
        raise
    except ChannelClosedError:
        raise
    except AttributionError as e:
        logger.warning(f"Analysis of {owner}/{repo} failed: {e.message}")
        if not channel.closed and not channel.cancelled:
            await channel.error(e.message, e.code)
        return None
    except Exception as e:
        logger.exception(f"Unexpected failure analyzing {owner}/{repo}")
        record_exception(
            e,
            {"owner": owner, "repo": repo, "branch": branch, "offset": offset},
        )
        if not channel.closed and not channel.cancelled:
            await channel.error(GENERIC_FAILURE_MESSAGE, "ANALYSIS_ERROR")
        return None
