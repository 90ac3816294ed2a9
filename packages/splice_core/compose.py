"""Tree and commit composition for the spliced history.

Both composers are folds over the merged timeline. The tree fold carries
the mapping from top-level directory name to the latest subtree hash of
the source placed there; the commit fold carries the hash of the last
commit written to the new chain.

Execution Context:
    Library module - imported by splice orchestration

Dependencies:
    - splice_core.models: MergeStep, TreeEntry, TREE_MODE, ABSENT

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import logging
from typing import Any
from typing import Mapping
from typing import Protocol

from splice_core.models import ABSENT
from splice_core.models import MergeStep
from splice_core.models import TREE_MODE
from splice_core.models import TreeEntry

logger = logging.getLogger(__name__)


class ObjectBuilder(Protocol):
    """Object store operations needed to build trees and commits."""

    def create_tree(self, entries: list[TreeEntry]) -> Any: ...

    def rewrite_commit(
            self,
            original: str,
            tree: str,
            parents: list[str],
            message_prefix: str = "",
    ) -> Any: ...


def object_hash(
        obj: Any,
) -> str:
    """Hex hash of an unwritten dulwich object."""
    return obj.id.decode("ascii")


# ---- Tree Composition ---------------------------------------------------------------------------------------


def compose_tree(
        mapping: Mapping[str, str],
        target: str,
        subtree: str | None,
) -> tuple[dict[str, str], list[TreeEntry]]:
    """Advance the directory mapping by one step.

    An ABSENT subtree leaves the mapping as it was; entries are only ever
    added or overwritten.

    Args:
        mapping: Directory name to subtree hash after the previous step.
        target: Top-level directory the step's source is placed under.
        subtree: Resolved subtree hash for the step, or ABSENT.

    Returns:
        Updated mapping and the root tree entries it describes, sorted
        by name.
    """
    updated = dict(mapping)
    if subtree is not ABSENT:
        updated[target] = subtree
    entries = [TreeEntry(mode=TREE_MODE, name=name, hash=updated[name]) for name in sorted(updated)]
    return updated, entries


def compose_trees(
        store: ObjectBuilder,
        steps: list[MergeStep],
        subtrees: list[str | None],
) -> list[Any]:
    """Build one root tree object per step, in step order.

    Steps that leave the mapping unchanged produce a tree identical to the
    previous one.
    """
    mapping: dict[str, str] = {}
    trees = []
    for step, subtree in zip(steps, subtrees):
        mapping, entries = compose_tree(mapping, step.source.target_name, subtree)
        trees.append(store.create_tree(entries))
    return trees


# ---- Commit Composition -------------------------------------------------------------------------------------


def compose_commit(
        store: ObjectBuilder,
        previous: str | None,
        step: MergeStep,
        tree: str,
        previous_tree: str | None,
) -> tuple[str | None, Any | None]:
    """Advance the commit chain by one step.

    Args:
        store: Object store used to build the commit.
        previous: Hash of the last commit in the new chain, or None.
        step: Step being rewritten.
        tree: Composed root tree hash for this step.
        previous_tree: Composed tree hash of the preceding step, or None
            for the first step.

    Returns:
        New chain tip and the commit object to write, or the unchanged
        tip and None when the step's tree equals the preceding one.
    """
    if previous_tree is not None and tree == previous_tree:
        return previous, None

    commit = store.rewrite_commit(
        step.commit.hash,
        tree=tree,
        parents=[previous] if previous else [],
        message_prefix=f"{step.source.name}: ",
    )
    return object_hash(commit), commit


def compose_commits(
        store: ObjectBuilder,
        steps: list[MergeStep],
        trees: list[str],
) -> list[Any]:
    """Rewrite the timeline into a linear chain of commits.

    Args:
        store: Object store used to build commits.
        steps: Merge steps in timeline order.
        trees: Composed tree hash per step.

    Returns:
        Commit objects oldest first; the last one is the new tip.
    """
    previous: str | None = None
    previous_tree: str | None = None
    commits = []
    for step, tree in zip(steps, trees):
        previous, commit = compose_commit(store, previous, step, tree, previous_tree)
        previous_tree = tree
        if commit is not None:
            commits.append(commit)

    logger.debug(f"{len(steps) - len(commits)} step(s) collapsed")
    return commits
