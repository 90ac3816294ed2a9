"""git-splice-subtree CLI Application.

Command-line interface for splicing the mainline histories of several
git repositories into one.

Execution Context:
    CLI application - invoked from terminal

Dependencies:
    - click: CLI framework
    - rich: Terminal formatting
    - splice_core: Core library

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

__version__ = "0.1.0"
