"""Source subtree resolution.

Finds, for every merge step, the hash of the source's configured subtree
inside the step's commit tree. Resolution runs one path level at a time
so that all tree reads for a level go to the store as a single batch.

Execution Context:
    Library module - imported by splice orchestration

Dependencies:
    - splice_core.models: MergeStep, TreeEntry, ABSENT

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import logging
from typing import Any
from typing import Protocol

from splice_core.models import ABSENT
from splice_core.models import MergeStep
from splice_core.models import TreeEntry

logger = logging.getLogger(__name__)


class TreeReader(Protocol):
    """Object store operations needed to descend into trees."""

    def get_objects(self, hashes: list[str]) -> list[Any]: ...

    def parse_tree(self, obj: Any) -> list[TreeEntry]: ...


def find_directory(
        entries: list[TreeEntry],
        name: str,
) -> str | None:
    """Hash of the subdirectory called name, or ABSENT."""
    for entry in entries:
        if entry.name == name and entry.is_tree:
            return entry.hash
    return ABSENT


def resolve_subtrees(
        store: TreeReader,
        steps: list[MergeStep],
) -> list[str | None]:
    """Resolve each step's source subtree.

    A step whose source has no subtree path resolves to its commit's root
    tree. Once a path segment is missing the step stays ABSENT.

    Args:
        store: Object store to read trees from.
        steps: Merge steps in timeline order.

    Returns:
        Subtree hash or ABSENT per step, parallel to steps.
    """
    hashes: list[str | None] = [step.commit.tree for step in steps]
    max_depth = max((len(step.source.source_tree) for step in steps), default=0)

    for depth in range(max_depth):
        logger.info(f"Traversing commit trees, level {depth}...")
        indices = [
            n for n, step in enumerate(steps)
            if depth < len(step.source.source_tree) and hashes[n] is not ABSENT
        ]
        # Many steps share a tree once the path narrows; read each once.
        unique = list(dict.fromkeys(hashes[n] for n in indices))
        entries = dict(zip(unique, (store.parse_tree(obj) for obj in store.get_objects(unique))))

        for n in indices:
            segment = steps[n].source.source_tree[depth]
            hashes[n] = find_directory(entries[hashes[n]], segment)

    return hashes
