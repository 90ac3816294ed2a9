"""End-to-end tests for splice_core.splice.run_splice."""
from __future__ import annotations

from pathlib import Path

import pytest

from splice_core.errors import ReverseMergeError
from splice_core.errors import SpecFileError
from splice_core.errors import TargetPathError
from splice_core.models import SpliceConfig
from splice_core.repository import SpliceRepository
from splice_core.splice import run_splice


def _chain(store: SpliceRepository, tip: str) -> list:
    """Published commits, oldest first."""
    commits = []
    current: str | None = tip
    while current:
        commit = store.get_object(current)
        commits.append(commit)
        assert len(commit.parents) <= 1
        current = commit.parents[0].decode() if commit.parents else None
    return list(reversed(commits))


def _top_level(store: SpliceRepository, commit) -> dict[str, str]:
    return {entry.name: entry.hash for entry in store.parse_tree(store.get_object(commit.tree.decode()))}


@pytest.fixture
def two_sources(graph, make_source):
    """A (whole tree) at t=10 and t=20; B (src subtree) at t=15."""
    a = make_source("A", "libA")
    b = make_source("B", "libB", "src")
    a_head = graph.chain([(10, {"a.txt": b"one"}), (20, {"a.txt": b"two"})], prefix="A change")
    b_head = graph.commit({"src": {"b.txt": b"bee"}, "README": b"r"}, time=15, message="B init")
    graph.set_ref("refs/sources/A/heads/master", a_head)
    graph.set_ref("refs/sources/B/heads/master", b_head)
    return [a, b], a_head, b_head


# ---- Scenario Tests -----------------------------------------------------------------------------------------


class TestTwoSourceScenario:
    """The libA/libB scenario run against an in-memory store."""

    def test_three_commits_in_time_order(self, store, two_sources) -> None:
        """Test each source commit yields one output commit, oldest first."""
        sources, _, _ = two_sources

        result = run_splice(sources, SpliceConfig(fetch=False), repository=store)
        chain = _chain(store, result.tip)

        assert result.commit_count == 3
        assert result.step_count == 3
        assert result.collapsed_count == 0
        assert [c.commit_time for c in chain] == [10, 15, 20]
        assert [c.message for c in chain] == [b"A: A change 0", b"B: B init", b"A: A change 1"]

    def test_trees_accumulate(self, store, two_sources) -> None:
        """Test libB appears at t=15 and stays while libA changes."""
        sources, a_head, b_head = two_sources

        result = run_splice(sources, SpliceConfig(fetch=False), repository=store)
        first, second, third = _chain(store, result.tip)

        assert set(_top_level(store, first)) == {"libA"}
        assert set(_top_level(store, second)) == {"libA", "libB"}
        final = _top_level(store, third)
        assert set(final) == {"libA", "libB"}
        assert final["libA"] == store.read_commit(a_head).tree
        assert final["libB"] == _top_level(store, second)["libB"]
        src_entries = store.parse_tree(store.get_object(final["libB"]))
        assert [e.name for e in src_entries] == ["b.txt"]

    def test_branch_published(self, store, two_sources) -> None:
        """Test refs/heads/master points at the tip and HEAD follows it."""
        sources, _, _ = two_sources

        result = run_splice(sources, SpliceConfig(fetch=False), repository=store)

        assert store.resolve_ref("refs/heads/master") == result.tip
        assert store.resolve_ref("HEAD") == result.tip
        assert result.commits_per_source == {"A": 2, "B": 1}

    def test_deterministic(self, store, two_sources) -> None:
        """Test running twice yields the same tip."""
        sources, _, _ = two_sources

        first = run_splice(sources, SpliceConfig(fetch=False), repository=store)
        second = run_splice(sources, SpliceConfig(fetch=False), repository=store)

        assert first.tip == second.tip


# ---- Collapse Tests -----------------------------------------------------------------------------------------


class TestCollapse:
    """Tests for steps that leave the combined tree unchanged."""

    def test_changes_outside_subtree_collapse(self, graph, store, make_source) -> None:
        """Test commits not touching the source subtree produce no commit."""
        source = make_source("B", "libB", "src")
        head = graph.chain(
            [
                (1, {"src": {"x": b"1"}}),
                (2, {"src": {"x": b"1"}, "docs": {"d": b"1"}}),
                (3, {"src": {"x": b"2"}, "docs": {"d": b"1"}}),
            ],
        )
        graph.set_ref("refs/sources/B/heads/master", head)

        result = run_splice([source], SpliceConfig(fetch=False), repository=store)

        assert result.step_count == 3
        assert result.commit_count == 2
        assert [c.commit_time for c in _chain(store, result.tip)] == [1, 3]


# ---- Failure Tests ------------------------------------------------------------------------------------------


class TestFailures:
    """Tests for fatal errors leaving the branch untouched."""

    def test_reverse_merge_without_two_parents(self, graph, store, make_source) -> None:
        """Test a bad reverse merge aborts before publishing."""
        root = graph.commit({"a": b"1"}, time=1)
        bogus = graph.commit(
            {"a": b"2"}, parents=[root], time=2, message="Merge branch 'master' of github.com:o/r",
        )
        graph.set_ref("refs/sources/A/heads/master", bogus)

        with pytest.raises(ReverseMergeError):
            run_splice([make_source("A", "libA")], SpliceConfig(fetch=False), repository=store)

        assert b"refs/heads/master" not in store.repo.refs.allkeys()

    def test_nested_target_rejected(self, store, make_source) -> None:
        """Test a two-segment target path is fatal."""
        with pytest.raises(TargetPathError, match="libs/a"):
            run_splice([make_source("A", "libs/a")], SpliceConfig(fetch=False), repository=store)

    def test_duplicate_names_rejected(self, store, make_source) -> None:
        """Test two sources with the same name are fatal."""
        sources = [make_source("A", "libA"), make_source("A", "libB")]
        with pytest.raises(SpecFileError, match="Duplicate"):
            run_splice(sources, SpliceConfig(fetch=False), repository=store)


# ---- On-Disk Tests ------------------------------------------------------------------------------------------


class TestDiskSplice:
    """Full run with fetching into an on-disk result repository."""

    def test_fetch_splice_and_checkout(self, tmp_path: Path, disk_source_repo, make_source) -> None:
        """Test sources are fetched, spliced and checked out."""
        repo_a, builder_a = disk_source_repo("A")
        builder_a.set_ref(
            "refs/heads/master",
            builder_a.chain([(10, {"a.txt": b"one"}), (20, {"a.txt": b"two"})]),
        )
        repo_b, builder_b = disk_source_repo("B")
        builder_b.set_ref(
            "refs/heads/master",
            builder_b.commit({"src": {"b.txt": b"bee"}}, time=15, message="B init"),
        )
        sources = [
            make_source("A", "libA", url=repo_a.path),
            make_source("B", "libB", "src", url=repo_b.path),
        ]
        result_dir = tmp_path / "result"

        result = run_splice(sources, SpliceConfig(result_dir=str(result_dir), jobs=2))

        assert result.commit_count == 3
        assert (result_dir / "libA" / "a.txt").read_bytes() == b"two"
        assert (result_dir / "libB" / "b.txt").read_bytes() == b"bee"
        with SpliceRepository.open_or_init(result_dir) as repo:
            assert repo.resolve_ref("refs/heads/master") == result.tip
            assert repo.resolve_ref("refs/sources/B/heads/master")
