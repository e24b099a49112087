"""Current-state line ownership via git blame.

Every tracked file is blamed once with ``--line-porcelain``. Files are handed
out to a thread pool through a shared cursor, each worker counts lines into
its own Counter, and the counters are summed after the pool joins. Identities
can then be folded through ``.mailmap`` with batched ``git check-mailmap``
calls.
"""

import concurrent.futures
import logging
import os
import re
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..config import BlameConfig, GitConfig
from ..errors import (
    AnalysisCancelledError,
    ProcessFailureError,
    ProcessTimeoutError,
)
from ..models import AuthorAttribution, BlameResult
from ..utils.git_runner import ensure_git_repository, run_git_command

logger = logging.getLogger(__name__)

AuthorKey = Tuple[str, Optional[str]]

MAILMAP_BATCH_SIZE = 100
BINARY_INDEX_MARKER = "i/-text"

_MAILMAP_LINE = re.compile(r"^(.*?)\s*<([^<>]*)>$")


def default_worker_count() -> int:
    """Pool size: cpu count clamped to 2..8."""
    return min(max(2, os.cpu_count() or 1), 8)


def author_key(name: Optional[str], email: Optional[str]) -> AuthorKey:
    """Normalize a raw (name, email) pair; empty emails become None."""
    clean_name = (name or "Unknown").strip() or "Unknown"
    clean_email = (email or "").strip().lower()
    return clean_name, clean_email or None


def parse_ls_files_eol(output: str) -> List[Tuple[str, bool]]:
    """Parse ``git ls-files --eol -z`` into (path, is_binary) pairs.

    Each entry is ``i/<eol> w/<eol> attr/<attrs><TAB><path>``; git reports
    the index content of a binary blob as ``i/-text``.
    """
    entries: List[Tuple[str, bool]] = []
    for entry in output.split("\0"):
        info, _, path = entry.partition("\t")
        if not path.strip():
            continue
        fields = info.split()
        entries.append((path, bool(fields) and fields[0] == BINARY_INDEX_MARKER))
    return entries


def parse_line_porcelain(output: str) -> Counter:
    """Count surviving lines per author in ``git blame --line-porcelain`` output.

    Each tab-prefixed content line closes one blame unit and is credited to
    the most recent ``author``/``author-mail`` pair.
    """
    counts: Counter = Counter()
    current_name: Optional[str] = None
    current_email: Optional[str] = None

    for line in output.split("\n"):
        if line.startswith("\t"):
            counts[author_key(current_name, current_email)] += 1
        elif line.startswith("author "):
            current_name = line[len("author ") :]
        elif line.startswith("author-mail "):
            current_email = line[len("author-mail ") :].strip().strip("<>")

    return counts


class _FileCursor:
    """Hands out file indices to workers, one at a time."""

    def __init__(self, total: int):
        self._total = total
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[int]:
        with self._lock:
            if self._next >= self._total:
                return None
            index = self._next
            self._next += 1
            return index


class _WorkerOutcome:
    def __init__(self) -> None:
        self.counts: Counter = Counter()
        self.files_seen = 0
        self.skipped: List[str] = []


class BlameAttributionEngine:
    """Computes per-author surviving line counts for a repository."""

    def __init__(
        self,
        config: Optional[BlameConfig] = None,
        git_config: Optional[GitConfig] = None,
    ):
        self.config = config or BlameConfig()
        self.git_config = git_config or GitConfig()
        self._mailmap_cache: Dict[AuthorKey, AuthorKey] = {}
        self._mailmap_lock = threading.Lock()

    def compute(
        self,
        repo_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None,
    ) -> BlameResult:
        """Blame every tracked file and return the attribution.

        Raises:
            NotARepositoryError: If ``repo_path`` is not a git working tree
            AnalysisCancelledError: If ``cancel_event`` was set during the scan
        """
        repo_path = ensure_git_repository(repo_path)
        entries = self.list_tracked_entries(repo_path)
        files = [path for path, is_binary in entries if not is_binary]
        binary_files = sorted(path for path, is_binary in entries if is_binary)
        binary_notes = [f"Binary file {path}: 0 lines" for path in binary_files]
        if binary_files:
            logger.info(f"Counting {len(binary_files)} binary files as zero lines")

        if not files:
            logger.info(f"No text files to blame in {repo_path}")
            return BlameResult(
                authors=(),
                files_processed=len(binary_files),
                total_lines=0,
                warnings=tuple(binary_notes),
            )

        worker_count = min(
            self.config.max_concurrency or default_worker_count(), len(files)
        )
        logger.info(
            f"Blaming {len(files)} files in {repo_path} with {worker_count} workers"
        )

        cursor = _FileCursor(len(files))
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix="blame"
        ) as executor:
            futures = [
                executor.submit(self._worker, repo_path, files, cursor, cancel_event)
                for _ in range(worker_count)
            ]
            outcomes = [future.result() for future in futures]

        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Blame scan was cancelled.")

        totals: Counter = Counter()
        skipped: List[str] = []
        files_seen = len(binary_files)
        for outcome in outcomes:
            totals.update(outcome.counts)
            skipped.extend(outcome.skipped)
            files_seen += outcome.files_seen

        if self.config.use_mailmap:
            totals = self.canonicalize(repo_path, totals)

        authors = sorted(
            (
                AuthorAttribution(name=name, email=email, lines=lines)
                for (name, email), lines in totals.items()
                if lines > 0
            ),
            key=lambda a: (-a.lines, a.name, a.email or ""),
        )

        return BlameResult(
            authors=tuple(authors),
            files_processed=files_seen,
            total_lines=sum(a.lines for a in authors),
            files_skipped=len(skipped),
            warnings=tuple(sorted(skipped) + binary_notes),
        )

    def list_tracked_entries(self, repo_path: Path) -> List[Tuple[str, bool]]:
        """Tracked paths with a flag for binary index content, in one git call."""
        output = run_git_command(
            ["git", "ls-files", "--eol", "-z"],
            cwd=repo_path,
            timeout=self.git_config.timeout_seconds,
            max_output_bytes=self.git_config.max_output_bytes,
        )
        return parse_ls_files_eol(output.stdout)

    def build_blame_command(self, repo_path: Path, relative_path: str) -> List[str]:
        cmd = ["git"]
        if (
            self.config.respect_ignore_revs_file
            and (repo_path / self.config.ignore_revs_file).is_file()
        ):
            cmd += ["-c", f"blame.ignoreRevsFile={self.config.ignore_revs_file}"]
        cmd.append("blame")
        if self.config.ignore_whitespace:
            cmd.append("-w")
        if self.config.detect_moves:
            cmd.append("-M")
        if self.config.detect_copies:
            cmd.append("-C")
        cmd += ["--line-porcelain", "--", relative_path]
        return cmd

    def blame_file(self, repo_path: Path, relative_path: str) -> Counter:
        output = run_git_command(
            self.build_blame_command(repo_path, relative_path),
            cwd=repo_path,
            timeout=self.git_config.timeout_seconds,
            max_output_bytes=self.git_config.max_output_bytes,
        )
        return parse_line_porcelain(output.stdout)

    def _worker(
        self,
        repo_path: Path,
        files: List[str],
        cursor: _FileCursor,
        cancel_event: Optional[threading.Event],
    ) -> _WorkerOutcome:
        outcome = _WorkerOutcome()
        while cancel_event is None or not cancel_event.is_set():
            index = cursor.claim()
            if index is None:
                break
            relative_path = files[index]
            outcome.files_seen += 1
            try:
                outcome.counts.update(self.blame_file(repo_path, relative_path))
            except (ProcessFailureError, ProcessTimeoutError) as e:
                logger.warning(f"Skipping {relative_path}: {e.message}")
                outcome.skipped.append(f"Skipped {relative_path}: {e.message}")
        return outcome

    def canonicalize(self, repo_path: Path, counts: Counter) -> Counter:
        """Re-key counts through .mailmap, keeping unresolvable keys as-is."""
        mapping = self.resolve_identities(repo_path, counts.keys())
        canonical: Counter = Counter()
        for key, lines in counts.items():
            canonical[mapping.get(key, key)] += lines
        return canonical

    def resolve_identities(
        self, repo_path: Path, keys: Iterable[AuthorKey]
    ) -> Dict[AuthorKey, AuthorKey]:
        """Map raw author keys to their mailmap identities (memoized)."""
        with self._mailmap_lock:
            pending = [
                key
                for key in dict.fromkeys(keys)
                if key not in self._mailmap_cache
            ]

        for key in pending:
            if key[1] is None:
                # check-mailmap needs an email
                self._store_identity(key, key)

        lookups = [key for key in pending if key[1] is not None]
        for start in range(0, len(lookups), MAILMAP_BATCH_SIZE):
            batch = lookups[start : start + MAILMAP_BATCH_SIZE]
            try:
                resolved = self._check_mailmap(repo_path, batch)
            except (ProcessFailureError, ProcessTimeoutError) as e:
                logger.debug(f"Batched mailmap lookup failed, retrying per key: {e}")
                resolved = [self._check_single(repo_path, key) for key in batch]
            for key, identity in zip(batch, resolved):
                self._store_identity(key, identity)

        with self._mailmap_lock:
            return {key: self._mailmap_cache.get(key, key) for key in keys}

    def _store_identity(self, key: AuthorKey, identity: AuthorKey) -> None:
        with self._mailmap_lock:
            self._mailmap_cache[key] = identity

    def _check_single(self, repo_path: Path, key: AuthorKey) -> AuthorKey:
        try:
            return self._check_mailmap(repo_path, [key])[0]
        except (ProcessFailureError, ProcessTimeoutError) as e:
            logger.warning(f"Mailmap lookup failed for {key[0]} <{key[1]}>: {e.message}")
            return key

    def _check_mailmap(
        self, repo_path: Path, keys: List[AuthorKey]
    ) -> List[AuthorKey]:
        contacts = [f"{name} <{email}>" for name, email in keys]
        output = run_git_command(
            ["git", "check-mailmap"] + contacts,
            cwd=repo_path,
            timeout=self.git_config.timeout_seconds,
            max_output_bytes=self.git_config.max_output_bytes,
        )
        lines = [line for line in output.stdout.split("\n") if line.strip()]
        if len(lines) != len(keys):
            raise ProcessFailureError(
                f"check-mailmap returned {len(lines)} identities for {len(keys)} contacts"
            )
        return [_parse_identity(line, key) for line, key in zip(lines, keys)]


def _parse_identity(line: str, fallback: AuthorKey) -> AuthorKey:
    match = _MAILMAP_LINE.match(line.strip())
    if not match:
        return fallback
    name = match.group(1).strip() or fallback[0]
    return author_key(name, match.group(2))


def compute_blame_attribution(
    repo_path: Union[str, Path],
    config: Optional[BlameConfig] = None,
    git_config: Optional[GitConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> BlameResult:
    """Convenience wrapper around BlameAttributionEngine.compute."""
    engine = BlameAttributionEngine(config=config, git_config=git_config)
    return engine.compute(repo_path, cancel_event=cancel_event)
