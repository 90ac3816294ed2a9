"""End-to-end splice orchestration.

Runs the pipeline: fetch sources, walk each mainline, merge the timelines,
resolve source subtrees, compose trees and commits, then publish the new
chain on the result branch. The branch is only updated after every object
has been written, so a failed run leaves it untouched.

Execution Context:
    Library module - called by the CLI

Dependencies:
    - splice_core.repository: dulwich-backed object store
    - splice_core.history, resolver, compose: splice stages

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from splice_core.compose import compose_commits
from splice_core.compose import compose_trees
from splice_core.compose import object_hash
from splice_core.errors import SpliceError
from splice_core.history import merge_histories
from splice_core.history import walk_source
from splice_core.models import Source
from splice_core.models import SpliceConfig
from splice_core.repository import RESET_MESSAGE
from splice_core.repository import SpliceRepository
from splice_core.resolver import resolve_subtrees
from splice_core.specfile import check_sources

logger = logging.getLogger(__name__)


@dataclass
class SpliceResult:
    """Outcome of a completed splice.

    Attributes:
        tip: Hash of the newest commit on the result branch.
        branch: Branch that was updated.
        step_count: Steps in the merged timeline.
        commit_count: Commits written (steps minus collapsed ones).
        commits_per_source: Written commits keyed by source name.
    """

    tip: str
    branch: str
    step_count: int
    commit_count: int
    commits_per_source: dict[str, int]

    @property
    def collapsed_count(
            self,
    ) -> int:
        """Steps that produced no commit."""
        return self.step_count - self.commit_count


def run_splice(
        sources: list[Source],
        config: SpliceConfig,
        repository: SpliceRepository | None = None,
) -> SpliceResult:
    """Splice the mainlines of all sources into the result repository.

    Args:
        sources: Sources in spec file order.
        config: Run configuration.
        repository: Store to use instead of opening config.result_dir.

    Returns:
        SpliceResult describing the published chain.

    Raises:
        SpliceError: On any validation, history or object store failure.
    """
    check_sources(sources)

    repo = repository or SpliceRepository.open_or_init(config.result_dir, jobs=config.jobs)
    try:
        return _splice(repo, sources, config)
    finally:
        if repository is None:
            repo.close()


def _splice(
        repo: SpliceRepository,
        sources: list[Source],
        config: SpliceConfig,
) -> SpliceResult:
    if config.fetch:
        logger.info("Fetching...")
        repo.fetch_sources(sources, config.branch)

    logger.info("Loading history...")
    histories = [walk_source(repo, source, config.branch) for source in sources]

    logger.info("Examining history...")
    steps = merge_histories(histories)
    if not steps:
        raise SpliceError("No commits to splice")

    subtrees = resolve_subtrees(repo, steps)

    logger.info("Computing tree objects...")
    trees = compose_trees(repo, steps, subtrees)

    logger.info("Writing tree objects...")
    repo.write_objects(trees)

    logger.info("Writing commit objects...")
    tree_hashes = [object_hash(tree) for tree in trees]
    commits = compose_commits(repo, steps, tree_hashes)
    repo.write_objects(commits)
    tip = object_hash(commits[-1])

    logger.info("Creating branch...")
    repo.publish(config.branch, tip, RESET_MESSAGE)

    commits_per_source = {source.name: 0 for source in sources}
    for n, step in enumerate(steps):
        if n == 0 or tree_hashes[n] != tree_hashes[n - 1]:
            commits_per_source[step.source.name] += 1

    logger.info("Done.")
    return SpliceResult(
        tip=tip,
        branch=config.branch,
        step_count=len(steps),
        commit_count=len(commits),
        commits_per_source=commits_per_source,
    )
