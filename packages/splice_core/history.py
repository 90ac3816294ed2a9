"""Mainline history walking and chronological merging.

Each source's branch is reduced to a linear chain of commits by following
first parents, except through "reverse merges" (a pull of master from
GitHub into a local master) where the mainline continues through the
second parent. The per-source chains are then merged into one timeline.

Execution Context:
    Library module - imported by splice orchestration

Dependencies:
    - splice_core.models: Source, CommitInfo, MergeStep
    - splice_core.errors: ReverseMergeError

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import logging
import re
from itertools import chain
from typing import Protocol

from splice_core.errors import ReverseMergeError
from splice_core.models import CommitInfo
from splice_core.models import MergeStep
from splice_core.models import Source

logger = logging.getLogger(__name__)


# ---- Constants ----------------------------------------------------------------------------------------------


REVERSE_MERGE_PATTERN = re.compile(r"^Merge branch 'master' of github")


class CommitReader(Protocol):
    """Object store operations needed to walk history."""

    def resolve_ref(self, name: str) -> str: ...

    def read_commit(self, hash_: str) -> CommitInfo: ...


# ---- Linear History -----------------------------------------------------------------------------------------


def is_reverse_merge(
        commit: CommitInfo,
) -> bool:
    """True if the commit's first message line carries the reverse-merge marker."""
    return bool(commit.message_lines) and REVERSE_MERGE_PATTERN.match(commit.first_line) is not None


def check_reverse_merge(
        commit: CommitInfo,
) -> str | None:
    """Check that a reverse-merge commit can be followed.

    Returns:
        Error message if the commit carries the marker without having
        exactly two parents, None otherwise.
    """
    if is_reverse_merge(commit) and len(commit.parents) != 2:
        return (
            f"Reverse merge {commit.hash} ({commit.first_line!r}) has "
            f"{len(commit.parents)} parent(s), expected 2"
        )
    return None


def mainline_parent(
        commit: CommitInfo,
) -> str | None:
    """Next commit along the mainline, or None at a root commit.

    Callers must run check_reverse_merge first.
    """
    if is_reverse_merge(commit):
        return commit.parents[1]
    return commit.parents[0] if commit.parents else None


def walk_linear_history(
        store: CommitReader,
        source: Source,
        head: str,
) -> list[MergeStep]:
    """Walk a source's mainline from head back to its root.

    Args:
        store: Object store to read commits from.
        source: Source the commits belong to.
        head: Hash of the newest commit.

    Returns:
        Merge steps, newest first.

    Raises:
        ReverseMergeError: If a reverse-merge commit lacks two parents.
    """
    steps: list[MergeStep] = []
    current: str | None = head
    while current is not None:
        commit = store.read_commit(current)
        error = check_reverse_merge(commit)
        if error:
            raise ReverseMergeError(f"{source.name}: {error}")
        steps.append(MergeStep(source=source, commit=commit))
        current = mainline_parent(commit)

    logger.debug(f"{len(steps)} linear history commits in {source.name}")
    return steps


def walk_source(
        store: CommitReader,
        source: Source,
        branch: str,
) -> list[MergeStep]:
    """Walk the mainline of a source's fetched branch ref."""
    head = store.resolve_ref(source.source_ref(branch))
    return walk_linear_history(store, source, head)


# ---- Chronological Merge ------------------------------------------------------------------------------------


def merge_histories(
        histories: list[list[MergeStep]],
) -> list[MergeStep]:
    """Merge per-source histories into one ascending timeline.

    Steps are stable-sorted by commit timestamp, so equal timestamps keep
    their relative order from the concatenated input. The timeline is then
    cut at the first step newer than the newest source head.

    Args:
        histories: Per-source merge steps, each newest first.

    Returns:
        Merge steps, oldest first.
    """
    heads = [history[0] for history in histories if history]
    if not heads:
        return []

    latest_time = max(step.commit.timestamp for step in heads)
    ordered = sorted(chain.from_iterable(histories), key=lambda step: step.commit.timestamp)
    for index, step in enumerate(ordered):
        if step.commit.timestamp > latest_time:
            logger.warning(
                f"Dropping {len(ordered) - index} commit(s) newer than the latest head "
                f"(first: {step.commit.hash} from {step.source.name})"
            )
            return ordered[:index]
    return ordered
