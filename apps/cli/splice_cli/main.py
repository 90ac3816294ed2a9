"""git-splice-subtree CLI entry point.

Provides the main entry point for the `git-splice-subtree` command.

Execution Context:
    CLI application - run via `python main.py` or `git-splice-subtree` command

Dependencies:
    - click: CLI framework
    - splice_core: Core library

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import sys

import click

from splice_cli.commands.splice import splice

cli = splice


# ---- Main Function ------------------------------------------------------------------------------------------


def main() -> int:
    """Main entry point for the git-splice-subtree CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        cli()
        return 0
    except Exception as cli_error:
        click.echo(f"Error: {cli_error}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
