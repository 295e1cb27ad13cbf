import git
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class CommitRecord:
    hexsha: str
    authored_at: datetime
    message: str
    added_lines: int


@dataclass(frozen=True)
class CommitInfo:
    short_hash: str
    title: str
    date: datetime


def get_repo(path: str = "."):
    try:
        return git.Repo(path)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None


def get_head_commit(path: str = ".") -> Optional[str]:
    repo = get_repo(path)
    if repo is None:
        return None
    try:
        return repo.head.commit.hexsha
    except ValueError:
        # Unborn HEAD: the repository exists but has no commits yet
        return None


def get_commit_info(path: str, commit: str) -> Optional[CommitInfo]:
    repo = get_repo(path)
    if repo is None:
        return None
    try:
        c = repo.commit(commit)
    except (ValueError, git.exc.ODBError, git.exc.GitCommandError):
        return None
    return CommitInfo(
        short_hash=c.hexsha[:7],
        title=c.summary if isinstance(c.summary, str) else c.summary.decode("utf-8", "replace"),
        date=c.committed_datetime,
    )


def _added_lines(commit: git.Commit) -> int:
    # Commit.stats diffs against the first parent, or against the empty tree for a root commit
    try:
        return int(commit.stats.total.get("insertions", 0))
    except (ValueError, git.exc.GitCommandError):
        # Shallow clones lose the parent tree at the boundary commit
        return 0


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.astimezone()
    return moment


def read_commits(
    repo_path: str,
    since: Optional[datetime] = None,
    after_commit: Optional[str] = None,
) -> List[CommitRecord]:
    """
    Read the commit log of HEAD, oldest first.

    after_commit is an exclusive boundary: it and all of its ancestors are
    skipped. since is an inclusive lower bound on the author timestamp.
    A missing repository, an empty history or an unknown boundary all yield
    an empty list.
    """
    repo = get_repo(repo_path)
    if repo is None:
        return []

    rev = f"{after_commit}..HEAD" if after_commit else "HEAD"
    cutoff = _as_aware(since) if since is not None else None
    kwargs = {}
    if cutoff is not None:
        # git prunes by committer date, which normally trails the author date
        kwargs["since"] = cutoff.strftime("%Y-%m-%dT%H:%M:%S%z")
    try:
        commits = list(repo.iter_commits(rev, reverse=True, **kwargs))
    except (ValueError, git.exc.GitCommandError):
        # ValueError implies no commits on the reference (like 'main' doesn't exist yet)
        return []

    records = []
    for commit in commits:
        authored_at = commit.authored_datetime
        if cutoff is not None and authored_at < cutoff:
            continue
        message = commit.message
        if isinstance(message, bytes):
            message = message.decode("utf-8", "replace")
        records.append(CommitRecord(
            hexsha=commit.hexsha,
            authored_at=authored_at,
            message=message,
            added_lines=_added_lines(commit),
        ))
    return records
