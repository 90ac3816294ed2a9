"""Shared test configuration and fixtures for splice_core tests.

Provides:
- GraphBuilder: writes blobs, nested trees and commits into a dulwich
  repository so tests can describe source histories compactly.
- In-memory repository fixtures, and a factory for on-disk source
  repositories used by the end-to-end tests.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any
from typing import Callable
from typing import Iterator

import pytest
from dulwich.objects import Blob
from dulwich.objects import Commit
from dulwich.objects import Tree
from dulwich.repo import BaseRepo
from dulwich.repo import MemoryRepo
from dulwich.repo import Repo

from splice_core.models import Source
from splice_core.repository import SpliceRepository

FILE_MODE = 0o100644
DIR_MODE = 0o040000
IDENTITY = b"Test User <test@example.com>"


# ---- Graph Builder ------------------------------------------------------------------------------------------


class GraphBuilder:
    """Writes small commit graphs into a dulwich repository.

    Trees are described as nested dicts: bytes values become files and
    dict values become subdirectories.
    """

    def __init__(
            self,
            repo: BaseRepo,
    ) -> None:
        self.repo = repo

    def tree(
            self,
            layout: dict[str, Any],
    ) -> str:
        """Write a nested tree and return its hash."""
        tree = Tree()
        for name, value in layout.items():
            if isinstance(value, dict):
                tree.add(name.encode(), DIR_MODE, self.tree(value).encode())
            else:
                blob = Blob.from_string(value)
                self.repo.object_store.add_object(blob)
                tree.add(name.encode(), FILE_MODE, blob.id)
        self.repo.object_store.add_object(tree)
        return tree.id.decode()

    def commit(
            self,
            layout: dict[str, Any] | str,
            parents: list[str] | None = None,
            message: str | bytes = "Change",
            time: int = 0,
            author_time: int | None = None,
            encoding: bytes | None = None,
    ) -> str:
        """Write a commit over a tree layout (or an existing tree hash)."""
        tree = layout if isinstance(layout, str) else self.tree(layout)
        commit = Commit()
        commit.tree = tree.encode()
        commit.parents = [parent.encode() for parent in parents or []]
        commit.author = IDENTITY
        commit.committer = IDENTITY
        commit.author_time = time if author_time is None else author_time
        commit.commit_time = time
        commit.author_timezone = 0
        commit.commit_timezone = 0
        commit.message = message if isinstance(message, bytes) else message.encode()
        if encoding:
            commit.encoding = encoding
        self.repo.object_store.add_object(commit)
        return commit.id.decode()

    def chain(
            self,
            commits: list[tuple[int, dict[str, Any]]],
            prefix: str = "Commit",
    ) -> str:
        """Write a linear chain of (time, layout) commits; return the head."""
        head: str | None = None
        for index, (time, layout) in enumerate(commits):
            head = self.commit(
                layout,
                parents=[head] if head else [],
                message=f"{prefix} {index}",
                time=time,
            )
        assert head is not None
        return head

    def set_ref(
            self,
            name: str,
            commit: str,
    ) -> None:
        self.repo.refs[name.encode()] = commit.encode()


# ---- Fixtures -----------------------------------------------------------------------------------------------


@pytest.fixture
def memory_repo() -> MemoryRepo:
    """Empty in-memory dulwich repository."""
    return MemoryRepo()


@pytest.fixture
def graph(memory_repo: MemoryRepo) -> GraphBuilder:
    """Graph builder writing into memory_repo."""
    return GraphBuilder(memory_repo)


@pytest.fixture
def store(memory_repo: MemoryRepo) -> SpliceRepository:
    """SpliceRepository over memory_repo."""
    return SpliceRepository(memory_repo)


@pytest.fixture
def make_source() -> Callable[..., Source]:
    """Factory for Source objects with short path arguments."""

    def _make(
            name: str,
            target: str,
            subtree: str = "",
            url: str | None = None,
    ) -> Source:
        return Source(
            name=name,
            url=url or f"https://example.com/{name}.git",
            source_tree=tuple(segment for segment in subtree.split("/") if segment),
            target_tree=tuple(segment for segment in target.split("/") if segment),
        )

    return _make


@pytest.fixture
def disk_source_repo(tmp_path: Path) -> Iterator[Callable[[str], tuple[Repo, GraphBuilder]]]:
    """Factory creating on-disk source repositories under tmp_path."""
    opened: list[Repo] = []

    def _make(
            name: str,
    ) -> tuple[Repo, GraphBuilder]:
        path = tmp_path / "sources" / name
        path.mkdir(parents=True)
        repo = Repo.init(str(path))
        opened.append(repo)
        return repo, GraphBuilder(repo)

    yield _make

    for repo in opened:
        repo.close()
