"""git-splice-subtree splice command.

Reads a spec file and rewrites the listed repositories' mainline
histories into the result repository.

Execution Context:
    CLI command - invoked via `git-splice-subtree SPECFILE`

Dependencies:
    - click: CLI framework
    - rich: Terminal output
    - splice_core: Spec parsing and splice pipeline

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from splice_core.errors import SpliceError
from splice_core.splice import SpliceResult
from splice_core.splice import run_splice
from splice_core.specfile import parse_spec_file

from .utils import configure_logging
from .utils import resolve_config

console = Console()


def _print_summary(
        result: SpliceResult,
) -> None:
    table = Table(title="Spliced history")
    table.add_column("Source", style="cyan")
    table.add_column("Commits", justify="right")
    for name, count in result.commits_per_source.items():
        table.add_row(name, str(count))
    console.print(table)
    console.print(
        f"[green]{result.commit_count} commit(s) on '{result.branch}' "
        f"({result.collapsed_count} collapsed), tip {result.tip[:12]}[/green]"
    )


# ---- Splice Command -----------------------------------------------------------------------------------------


@click.command(name="git-splice-subtree")
@click.version_option(version="0.1.0", prog_name="git-splice-subtree")
@click.argument(
    "specfile",
    type=click.Path(exists=True, dir_okay=False),
)
@click.option(
    "--result-dir",
    "-o",
    default=None,
    help="Repository to write the combined history to [default: result].",
)
@click.option(
    "--branch",
    "-b",
    default=None,
    help="Branch fetched from each source and published [default: master].",
)
@click.option(
    "--no-fetch",
    is_flag=True,
    help="Use previously fetched source refs instead of fetching.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Parallel fetches and object reads [default: 8].",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show debug output.",
)
def splice(
        specfile: str,
        result_dir: str | None,
        branch: str | None,
        no_fetch: bool,
        jobs: int | None,
        verbose: bool,
) -> None:
    """Merge the mainline history of several repositories into one.

    SPECFILE lists one source per line as tab-separated fields:
    TARGET-SUBTREE SOURCE-URL [SOURCE-SUBTREE]

    Examples:
        git-splice-subtree repos.tsv
        git-splice-subtree --no-fetch -o combined repos.tsv
    """
    configure_logging(verbose)
    try:
        config = resolve_config(
            result_dir=result_dir,
            branch=branch,
            no_fetch=no_fetch,
            jobs=jobs,
        )
        sources = parse_spec_file(specfile)
        result = run_splice(sources, config)
    except (SpliceError, ValueError) as splice_error:
        msg = f"Splice failed: {splice_error}"
        raise click.ClickException(msg) from splice_error

    _print_summary(result)
