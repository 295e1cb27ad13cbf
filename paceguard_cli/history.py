"""
Attributed Work Aggregator
──────────────────────────
Turns the commit log into human / agent totals.

Full-history totals are cached per project, keyed by the HEAD commit they
were computed at. An unwindowed query on the counter's own tracking
boundary is answered from that cache. A windowed query ("last 7 days") is
never cached: its answer drifts as time passes even when no new commit lands.
"""

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from paceguard_cli.detectors.attribution import AttributionDetector, Author
from paceguard_cli.git_client import CommitRecord, get_head_commit, read_commits
from paceguard_cli.state import FileStateStore, StateError, StateStore

logger = logging.getLogger(__name__)

CACHE_KEY = "history_cache"


@dataclass(frozen=True)
class LineCounts:
    human_lines: int = 0
    claude_lines: int = 0
    human_commits: int = 0
    claude_commits: int = 0
    from_cache: bool = False
    commits_scanned: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class _CachedCounts(BaseModel):
    human_lines: int = Field(ge=0)
    claude_lines: int = Field(ge=0)
    human_commits: int = Field(ge=0)
    claude_commits: int = Field(ge=0)


class CacheEntry(BaseModel):
    project: str
    head: str
    tracking_start_commit: Optional[str] = None
    marker: Optional[str] = None
    counts: _CachedCounts


def aggregate(commits: Iterable[CommitRecord], detector: Optional[AttributionDetector] = None) -> LineCounts:
    detector = detector or AttributionDetector()
    human_lines = claude_lines = human_commits = claude_commits = 0
    for commit in commits:
        if detector.classify_commit(commit) is Author.AGENT:
            claude_lines += commit.added_lines
            claude_commits += 1
        else:
            human_lines += commit.added_lines
            human_commits += 1
    return LineCounts(
        human_lines=human_lines,
        claude_lines=claude_lines,
        human_commits=human_commits,
        claude_commits=claude_commits,
        from_cache=False,
        commits_scanned=human_commits + claude_commits,
    )


class HistoryCounter:
    """Aggregated attribution for one project, backed by a best-effort cache."""

    def __init__(
        self,
        repo_path,
        store: StateStore,
        tracking_start_commit: Optional[str] = None,
        detector: Optional[AttributionDetector] = None,
    ):
        self.repo_path = str(repo_path)
        self.project = str(Path(repo_path).resolve())
        self.store = store
        self.tracking_start_commit = tracking_start_commit
        self.detector = detector or AttributionDetector()

    def _scan(self, since: Optional[datetime] = None, after_commit: Optional[str] = None) -> LineCounts:
        commits = read_commits(self.repo_path, since=since, after_commit=after_commit)
        return aggregate(commits, self.detector)

    def _load_entry(self) -> Optional[CacheEntry]:
        try:
            raw = self.store.load(CACHE_KEY)
            if raw is None:
                return None
            return CacheEntry.model_validate(raw)
        except (StateError, ValidationError) as exc:
            logger.warning("Ignoring unreadable history cache for %s: %s", self.project, exc)
            return None

    def _store_entry(self, head: str, counts: LineCounts) -> None:
        entry = CacheEntry(
            project=self.project,
            head=head,
            tracking_start_commit=self.tracking_start_commit,
            marker=self.detector.pattern.pattern,
            counts=_CachedCounts(
                human_lines=counts.human_lines,
                claude_lines=counts.claude_lines,
                human_commits=counts.human_commits,
                claude_commits=counts.claude_commits,
            ),
        )
        try:
            self.store.save(CACHE_KEY, entry.model_dump())
        except OSError as exc:
            # A lost cache write only costs one extra rescan
            logger.warning("Could not write history cache for %s: %s", self.project, exc)

    def _refresh(self, head: Optional[str]) -> LineCounts:
        counts = self._scan(after_commit=self.tracking_start_commit)
        if head is not None:
            self._store_entry(head, counts)
        logger.debug("Scanned %d commits in %s", counts.commits_scanned, self.project)
        return counts

    def get_line_counts(self) -> LineCounts:
        head = get_head_commit(self.repo_path)
        if head is None:
            return LineCounts()

        entry = self._load_entry()
        if (
            entry is not None
            and entry.project == self.project
            and entry.head == head
            and entry.tracking_start_commit == self.tracking_start_commit
            and entry.marker == self.detector.pattern.pattern
        ):
            c = entry.counts
            return LineCounts(
                human_lines=c.human_lines,
                claude_lines=c.claude_lines,
                human_commits=c.human_commits,
                claude_commits=c.claude_commits,
                from_cache=True,
                commits_scanned=c.human_commits + c.claude_commits,
            )
        return self._refresh(head)

    def get_line_counts_with_window(
        self,
        since: Optional[datetime] = None,
        after_commit: Optional[str] = None,
    ) -> LineCounts:
        if since is None and after_commit == self.tracking_start_commit:
            return self.get_line_counts()
        return replace(self._scan(since=since, after_commit=after_commit), from_cache=False)

    def clear_cache(self) -> None:
        self.store.delete(CACHE_KEY)

    def recalculate_line_counts(self) -> LineCounts:
        self.clear_cache()
        return self._refresh(get_head_commit(self.repo_path))


def _counter(repo_path, tracking_start_commit=None, store=None) -> HistoryCounter:
    return HistoryCounter(
        repo_path,
        store or FileStateStore.for_project(repo_path),
        tracking_start_commit=tracking_start_commit,
    )


def get_line_counts(repo_path, tracking_start_commit: Optional[str] = None, store=None) -> LineCounts:
    return _counter(repo_path, tracking_start_commit, store).get_line_counts()


def get_line_counts_with_window(
    repo_path,
    since: Optional[datetime] = None,
    after_commit: Optional[str] = None,
    store=None,
) -> LineCounts:
    return _counter(repo_path, store=store).get_line_counts_with_window(since, after_commit)


def clear_cache(repo_path, store=None) -> None:
    _counter(repo_path, store=store).clear_cache()


def recalculate_line_counts(repo_path, tracking_start_commit: Optional[str] = None, store=None) -> LineCounts:
    return _counter(repo_path, tracking_start_commit, store).recalculate_line_counts()
