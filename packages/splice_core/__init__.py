"""git-splice-subtree Core Library.

Rewrites the mainline histories of several git repositories into one
linear history, placing each source's tree (or a subtree of it) under its
own top-level directory.

Execution Context:
    Library package - imported by the CLI

Dependencies:
    - dulwich: Git object store access

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

from splice_core.errors import SpliceError
from splice_core.models import CommitInfo
from splice_core.models import MergeStep
from splice_core.models import Source
from splice_core.models import SpliceConfig
from splice_core.models import TreeEntry

__version__ = "0.1.0"

__all__ = [
    "CommitInfo",
    "MergeStep",
    "Source",
    "SpliceConfig",
    "SpliceError",
    "TreeEntry",
    "__version__",
]
