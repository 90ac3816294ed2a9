"""Utility functions for git-splice-subtree CLI commands.

Execution Context:
    CLI command utilities - imported by command modules

Dependencies:
    - rich: Log rendering
    - splice_core.models: SpliceConfig

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from splice_core.models import SpliceConfig


def configure_logging(
        verbose: bool = False,
        console: Console | None = None,
) -> None:
    """Send splice_core progress logs to stderr through rich.

    Args:
        verbose: Log DEBUG messages as well as INFO.
        console: Console to render on (defaults to a stderr console).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    logger = logging.getLogger("splice_core")
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def resolve_config(
        result_dir: str | None = None,
        branch: str | None = None,
        no_fetch: bool = False,
        jobs: int | None = None,
) -> SpliceConfig:
    """Build the run configuration.

    Explicit options take precedence over GIT_SPLICE_* environment
    variables, which take precedence over the defaults.

    Raises:
        ValueError: If GIT_SPLICE_JOBS is invalid.
    """
    config = SpliceConfig.from_env()
    if result_dir:
        config.result_dir = result_dir
    if branch:
        config.branch = branch
    if no_fetch:
        config.fetch = False
    if jobs:
        config.jobs = jobs
    return config
