"""Exception types raised by the splice pipeline.

Every error here is fatal: the run aborts and the target branch is left
untouched.

Execution Context:
    Library module - imported by all splice_core modules and the CLI

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations


class SpliceError(RuntimeError):
    """Base class for all git-splice-subtree failures."""


class SpecFileError(SpliceError):
    """A spec file line could not be parsed or sources conflict."""


class TargetPathError(SpliceError):
    """A source's target subtree is not exactly one path segment."""


class ReverseMergeError(SpliceError):
    """A reverse-merge marker commit does not have exactly two parents."""


class ObjectStoreError(SpliceError):
    """Reading, writing or fetching git objects and refs failed."""
