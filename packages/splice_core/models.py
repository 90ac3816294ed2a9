"""Data models for git-splice-subtree.

Defines the sources read from a spec file, the parsed commit and tree
views handed out by the object store, the merge steps the splice walks
over, and the run configuration.

Execution Context:
    Library module - imported by other splice_core modules

Dependencies:
    - dataclasses: Data class decorators

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import os
from dataclasses import dataclass


# ---- Constants ----------------------------------------------------------------------------------------------


TREE_MODE = 0o040000

# Resolved subtree hash for a step whose source path is missing.
ABSENT = None

DEFAULT_RESULT_DIR = "result"
DEFAULT_BRANCH = "master"
DEFAULT_JOBS = 8


# ---- Data Model Classes -------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Source:
    """One repository taking part in the splice.

    Attributes:
        name: Symbolic name derived from the URL, used for ref namespaces
            and commit message prefixes.
        url: Location the source repository is fetched from.
        source_tree: Path segments of the subtree to take (empty for the
            whole tree).
        target_tree: Path segments the subtree is placed under.
    """

    name: str
    url: str
    source_tree: tuple[str, ...] = ()
    target_tree: tuple[str, ...] = ()

    @property
    def target_name(
            self,
    ) -> str:
        """Top-level directory this source is spliced into."""
        return self.target_tree[0]

    def source_ref(
            self,
            branch: str,
    ) -> str:
        """Local ref the source's branch is fetched into.

        Args:
            branch: Branch name on the source repository.

        Returns:
            Fully qualified ref name.
        """
        return f"refs/sources/{self.name}/heads/{branch}"

    def validate(
            self,
    ) -> str | None:
        """Check the target path shape.

        Returns:
            Error message, or None if the source is usable.
        """
        if len(self.target_tree) != 1:
            shown = "/".join(self.target_tree) or "<empty>"
            return (
                f"Target subtree '{shown}' of source '{self.name}' must be "
                f"exactly one directory"
            )
        return None


@dataclass(frozen=True)
class CommitInfo:
    """Parsed view of a commit object.

    Attributes:
        hash: Commit hash.
        parents: Parent hashes in order.
        tree: Root tree hash.
        message_lines: Commit message split into lines.
        timestamp: Committer time in seconds since the epoch.
    """

    hash: str
    parents: tuple[str, ...]
    tree: str
    message_lines: tuple[str, ...]
    timestamp: int

    @property
    def first_line(
            self,
    ) -> str:
        """First message line, or an empty string."""
        return self.message_lines[0] if self.message_lines else ""


@dataclass(frozen=True)
class TreeEntry:
    """Single entry of a tree object."""

    mode: int
    name: str
    hash: str

    @property
    def is_tree(
            self,
    ) -> bool:
        """True if the entry points at a subdirectory."""
        return self.mode == TREE_MODE


@dataclass(frozen=True)
class MergeStep:
    """A commit of one source's mainline, positioned in the merged timeline."""

    source: Source
    commit: CommitInfo


@dataclass
class SpliceConfig:
    """Run configuration.

    Attributes:
        result_dir: Repository directory the combined history is written to.
        branch: Branch fetched from every source and published in the result.
        fetch: Whether to fetch sources before splicing.
        jobs: Worker count for fetches and batched object reads.
    """

    result_dir: str = DEFAULT_RESULT_DIR
    branch: str = DEFAULT_BRANCH
    fetch: bool = True
    jobs: int = DEFAULT_JOBS

    @classmethod
    def from_env(
            cls,
            environ: dict[str, str] | None = None,
    ) -> SpliceConfig:
        """Build config from GIT_SPLICE_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ.

        Returns:
            SpliceConfig with defaults for unset variables.

        Raises:
            ValueError: If GIT_SPLICE_JOBS is not a positive integer.
        """
        env = os.environ if environ is None else environ
        jobs_value = env.get("GIT_SPLICE_JOBS", "")
        jobs = DEFAULT_JOBS
        if jobs_value:
            if not jobs_value.isdigit() or int(jobs_value) < 1:
                msg = f"GIT_SPLICE_JOBS must be a positive integer, got '{jobs_value}'"
                raise ValueError(msg)
            jobs = int(jobs_value)

        no_fetch = env.get("GIT_SPLICE_NO_FETCH", "").lower() in ("1", "true", "yes")
        return cls(
            result_dir=env.get("GIT_SPLICE_RESULT_DIR") or DEFAULT_RESULT_DIR,
            branch=env.get("GIT_SPLICE_BRANCH") or DEFAULT_BRANCH,
            fetch=not no_fetch,
            jobs=jobs,
        )
