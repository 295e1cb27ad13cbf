from __future__ import annotations

import itertools
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import git
import pytest

from paceguard_cli.config import get_settings

AGENT_TRAILER = "Co-Authored-By: Claude <noreply@anthropic.com>"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.delenv("PACEGUARD_LOG_LEVEL", raising=False)
    monkeypatch.delenv("PACEGUARD_AGENT_MARKER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def repo(tmp_path: Path) -> git.Repo:
    repository = git.Repo.init(tmp_path / "project")
    with repository.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@test.com")
    return repository


@pytest.fixture
def project(repo: git.Repo) -> str:
    return str(repo.working_tree_dir)


@pytest.fixture
def commit(repo: git.Repo) -> Callable[..., git.Commit]:
    counter = itertools.count()

    def _commit(
        message: str,
        content: Optional[str] = None,
        *,
        agent: bool = False,
        filename: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> git.Commit:
        n = next(counter)
        name = filename or f"file{n}.txt"
        path = Path(repo.working_tree_dir) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content if content is not None else f"line {n}\n", encoding="utf-8")
        repo.index.add([name])
        if agent:
            message = f"{message}\n\n{AGENT_TRAILER}\n"
        kwargs = {}
        if when is not None:
            stamp = f"{int(when.timestamp())} +0000"
            kwargs = {"author_date": stamp, "commit_date": stamp}
        return repo.index.commit(message, **kwargs)

    return _commit
