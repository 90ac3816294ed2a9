"""Spec file parsing for git-splice-subtree.

A spec file lists one source per line as tab-separated fields::

    TARGET-SUBTREE<TAB>SOURCE-URL[<TAB>SOURCE-SUBTREE]

Blank lines are ignored and empty fields are dropped, so repeated tabs
are harmless.

Execution Context:
    Library module - imported by the CLI and splice orchestration

Dependencies:
    - splice_core.models: Source data model
    - splice_core.errors: SpecFileError, TargetPathError

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

from pathlib import Path

from splice_core.errors import SpecFileError
from splice_core.errors import TargetPathError
from splice_core.models import Source


# ---- Path Helpers -------------------------------------------------------------------------------------------


def split_tree_path(
        tree: str,
) -> tuple[str, ...]:
    """Split a slash-separated tree path, dropping empty segments.

    Args:
        tree: Path such as "src/lib/" or "".

    Returns:
        Tuple of path segments.
    """
    return tuple(segment for segment in tree.split("/") if segment)


def repository_name_from_url(
        url: str,
) -> str:
    """Derive a short repository name from its URL.

    "https://github.com/owner/libA.git" and "git@host:owner/libA" both
    give "libA".
    """
    stripped = url.rstrip("/")
    name = stripped.replace(":", "/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name


# ---- Parsing ------------------------------------------------------------------------------------------------


def parse_spec_line(
        line: str,
        line_number: int = 0,
) -> Source | None:
    """Parse a single spec line.

    Args:
        line: Raw line text.
        line_number: 1-based line number used in error messages.

    Returns:
        Source for the line, or None for a blank line.

    Raises:
        SpecFileError: If the line does not have 2 or 3 fields.
    """
    stripped = line.strip()
    fields = [value for value in stripped.split("\t") if value]
    if not fields:
        return None
    if not 2 <= len(fields) <= 3:
        msg = f"Bad line {line_number}: {stripped!r}"
        raise SpecFileError(msg)

    url = fields[1]
    source_tree = fields[2] if len(fields) > 2 else ""
    return Source(
        name=repository_name_from_url(url),
        url=url,
        source_tree=split_tree_path(source_tree),
        target_tree=split_tree_path(fields[0]),
    )


def parse_spec_text(
        text: str,
) -> list[Source]:
    """Parse spec file contents into sources, in file order."""
    sources = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        source = parse_spec_line(line, line_number)
        if source is not None:
            sources.append(source)
    return sources


def parse_spec_file(
        path: Path | str,
) -> list[Source]:
    """Read and parse a spec file.

    Args:
        path: Spec file location.

    Returns:
        Sources in file order.

    Raises:
        SpecFileError: If the file cannot be read or a line is malformed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as read_error:
        msg = f"Failed to read spec file {path}: {read_error}"
        raise SpecFileError(msg) from read_error
    return parse_spec_text(text)


# ---- Validation ---------------------------------------------------------------------------------------------


def validate_sources(
        sources: list[Source],
) -> list[str]:
    """Collect problems that make a source list unusable.

    Args:
        sources: Parsed sources.

    Returns:
        List of error messages (empty if the sources are valid).
    """
    errors = []
    if not sources:
        errors.append("Spec file lists no sources")

    seen_names: set[str] = set()
    for source in sources:
        target_error = source.validate()
        if target_error:
            errors.append(target_error)
        if source.name in seen_names:
            errors.append(f"Duplicate source name '{source.name}' ({source.url})")
        seen_names.add(source.name)
    return errors


def check_sources(
        sources: list[Source],
) -> None:
    """Raise for the first class of problem found by validate_sources.

    Raises:
        TargetPathError: If any target subtree is not one segment.
        SpecFileError: For any other validation problem.
    """
    target_errors = [error for error in map(Source.validate, sources) if error]
    if target_errors:
        raise TargetPathError("; ".join(target_errors))

    errors = validate_sources(sources)
    if errors:
        raise SpecFileError("; ".join(errors))
