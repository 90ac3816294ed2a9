"""Git object store access for git-splice-subtree.

Wraps a dulwich repository with the handful of operations the splice
needs: ref resolution, batched object reads, commit and tree parsing,
object construction, batched writes, fetching source branches and
publishing the result branch.

Execution Context:
    Library module - imported by splice orchestration and the CLI

Dependencies:
    - dulwich: Git object model, refs, transport and working tree reset
    - splice_core.concurrency: Bounded worker pool for bulk reads/fetches
    - splice_core.models: CommitInfo, TreeEntry, Source

Metadata:
    Version: 0.1.0
    Author: git-splice-subtree Team
"""
from __future__ import annotations

import codecs
import logging
import threading
from pathlib import Path
from typing import Any

from dulwich import porcelain
from dulwich.client import get_transport_and_path
from dulwich.objects import Commit
from dulwich.objects import ShaFile
from dulwich.objects import Tree
from dulwich.repo import BaseRepo
from dulwich.repo import Repo

from splice_core.concurrency import WorkerPool
from splice_core.errors import ObjectStoreError
from splice_core.errors import SpliceError
from splice_core.models import CommitInfo
from splice_core.models import Source
from splice_core.models import TreeEntry

logger = logging.getLogger(__name__)


# ---- Constants ----------------------------------------------------------------------------------------------


HEADS_PREFIX = "refs/heads/"
RESET_MESSAGE = "git-splice-subtree reset"


def _to_hex(
        sha: bytes,
) -> str:
    return sha.decode("ascii")


def _to_sha(
        hash_: str,
) -> bytes:
    return hash_.encode("ascii")


def _message_encoding(
        commit: Commit,
) -> str:
    """Codec for a commit message; utf-8 when the header is unset or unknown.

    git stores the encoding header verbatim, so it may name a codec
    Python does not have.
    """
    if not commit.encoding:
        return "utf-8"
    name = commit.encoding.decode("ascii", errors="replace")
    try:
        return codecs.lookup(name).name
    except LookupError:
        logger.debug(f"Unknown encoding '{name}' on {_to_hex(commit.id)}, using utf-8")
        return "utf-8"


# ---- Repository Class ---------------------------------------------------------------------------------------


class SpliceRepository:
    """Object store collaborator backed by dulwich.

    Disk repositories are reopened once per worker thread for the
    parallel stages, since a dulwich Repo shares open pack files between
    callers. One worker pool lives as long as the repository, so the
    number of extra handles never exceeds jobs. In-memory repositories
    are shared directly.

    Attributes:
        repo: Underlying dulwich repository.
        jobs: Worker count for batched reads and fetches.
    """

    def __init__(
            self,
            repo: BaseRepo,
            jobs: int = 1,
    ) -> None:
        """Wrap an open dulwich repository.

        Args:
            repo: dulwich Repo or MemoryRepo.
            jobs: Worker count for bulk operations.
        """
        self.repo = repo
        self.jobs = jobs
        self._owner = threading.get_ident()
        self._local = threading.local()
        self._opened: list[Repo] = []
        self._lock = threading.Lock()
        self._pool = WorkerPool(jobs)

    @classmethod
    def open_or_init(
            cls,
            path: Path | str,
            jobs: int = 1,
    ) -> SpliceRepository:
        """Open the repository at path, creating it if needed.

        Args:
            path: Repository directory.
            jobs: Worker count for bulk operations.

        Returns:
            SpliceRepository for the directory.

        Raises:
            ObjectStoreError: If the directory cannot be created or opened.
        """
        root = Path(path)
        try:
            if not (root / ".git").exists():
                root.mkdir(parents=True, exist_ok=True)
                logger.info(f"Initializing repository in {root}")
                repo = Repo.init(str(root))
            else:
                repo = Repo(str(root))
        except Exception as open_error:
            msg = f"Failed to open repository at {root}: {open_error}"
            raise ObjectStoreError(msg) from open_error
        return cls(repo, jobs=jobs)

    @property
    def root(
            self,
    ) -> Path | None:
        """Working tree directory, or None for in-memory repositories."""
        if isinstance(self.repo, Repo):
            return Path(self.repo.path)
        return None

    def close(
            self,
    ) -> None:
        """Stop the worker pool, then close per-thread handles and the wrapped repository."""
        self._pool.shutdown()
        with self._lock:
            opened, self._opened = self._opened, []
        for repo in opened:
            repo.close()
        if isinstance(self.repo, Repo):
            self.repo.close()

    def __enter__(
            self,
    ) -> SpliceRepository:
        return self

    def __exit__(
            self,
            exc_type: Any,
            exc_val: Any,
            exc_tb: Any,
    ) -> None:
        self.close()

    def _thread_repo(
            self,
    ) -> BaseRepo:
        """Repository handle owned by the calling thread."""
        if threading.get_ident() == self._owner or not isinstance(self.repo, Repo):
            return self.repo

        repo = getattr(self._local, "repo", None)
        if repo is None:
            repo = Repo(self.repo.path)
            self._local.repo = repo
            with self._lock:
                self._opened.append(repo)
        return repo

    # ---- Refs -----------------------------------------------------------------------------------------------

    def resolve_ref(
            self,
            name: str,
    ) -> str:
        """Resolve a ref name to a commit hash.

        Raises:
            ObjectStoreError: If the ref does not exist.
        """
        try:
            return _to_hex(self.repo.refs[name.encode("utf-8")])
        except KeyError as ref_error:
            msg = f"Reference '{name}' not found"
            raise ObjectStoreError(msg) from ref_error

    def update_branch(
            self,
            branch: str,
            commit_hash: str,
            message: str = RESET_MESSAGE,
    ) -> None:
        """Force a branch to point at a commit, recording a reflog entry.

        Args:
            branch: Short branch name.
            commit_hash: New tip.
            message: Reflog message.

        Raises:
            ObjectStoreError: If the ref could not be written.
        """
        ref_name = f"{HEADS_PREFIX}{branch}".encode("utf-8")
        try:
            updated = self.repo.refs.set_if_equals(
                ref_name,
                None,
                _to_sha(commit_hash),
                message=message.encode("utf-8"),
            )
        except Exception as ref_error:
            msg = f"Failed to update {ref_name.decode()}: {ref_error}"
            raise ObjectStoreError(msg) from ref_error
        if not updated:
            msg = f"Failed to update {ref_name.decode()}: ref is locked"
            raise ObjectStoreError(msg)

    def checkout_branch(
            self,
            branch: str,
    ) -> None:
        """Point HEAD at a branch without touching the working tree."""
        ref_name = f"{HEADS_PREFIX}{branch}".encode("utf-8")
        try:
            self.repo.refs.set_symbolic_ref(b"HEAD", ref_name)
        except Exception as ref_error:
            msg = f"Failed to point HEAD at {ref_name.decode()}: {ref_error}"
            raise ObjectStoreError(msg) from ref_error

    def reset_hard(
            self,
            treeish: str,
    ) -> None:
        """Reset index and working tree to treeish.

        In-memory repositories have no working tree; the call is a no-op.
        """
        if self.root is None:
            return
        try:
            porcelain.reset(self.repo, "hard", treeish)
        except Exception as reset_error:
            msg = f"Failed to reset working tree to {treeish}: {reset_error}"
            raise ObjectStoreError(msg) from reset_error

    def publish(
            self,
            branch: str,
            commit_hash: str,
            message: str = RESET_MESSAGE,
    ) -> None:
        """Check out branch at commit_hash, replacing the working tree.

        The working tree is reset while HEAD still names the previous tip,
        so the reset sees the old tree and removes files that went away.
        The branch is then force-updated with a reflog entry.
        """
        self.checkout_branch(branch)
        self.reset_hard(commit_hash)
        self.update_branch(branch, commit_hash, message)

    # ---- Fetching -------------------------------------------------------------------------------------------

    def fetch_branch(
            self,
            source: Source,
            branch: str,
    ) -> str:
        """Fetch one branch of a source into its namespaced local ref.

        Equivalent to fetching
        ``+refs/heads/<branch>:refs/sources/<name>/heads/<branch>``.

        Args:
            source: Source to fetch.
            branch: Branch name on the remote.

        Returns:
            Hash the local ref now points at.

        Raises:
            ObjectStoreError: If the remote or branch cannot be fetched.
        """
        target = self._thread_repo()
        remote_ref = f"{HEADS_PREFIX}{branch}".encode("utf-8")

        def determine_wants(refs, depth=None, **kwargs):
            if remote_ref not in refs:
                msg = f"Branch '{branch}' not found in {source.url}"
                raise ObjectStoreError(msg)
            wanted = refs[remote_ref]
            return [] if wanted in target.object_store else [wanted]

        try:
            client, path = get_transport_and_path(source.url)
            result = client.fetch(path, target, determine_wants=determine_wants)
            head = result.refs[remote_ref]
            target.refs.set_if_equals(
                source.source_ref(branch).encode("utf-8"),
                None,
                head,
                message=f"fetch {source.url}".encode("utf-8"),
            )
        except SpliceError:
            raise
        except Exception as fetch_error:
            msg = f"Failed to fetch {source.url}: {fetch_error}"
            raise ObjectStoreError(msg) from fetch_error

        logger.debug(f"Fetched {source.name} {branch} at {_to_hex(head)}")
        return _to_hex(head)

    def fetch_sources(
            self,
            sources: list[Source],
            branch: str,
    ) -> list[str]:
        """Fetch every source's branch concurrently.

        Returns:
            Fetched head hashes in source order.
        """
        return self._pool.map_ordered(
            lambda source: self.fetch_branch(source, branch),
            sources,
        )

    # ---- Object Reads ---------------------------------------------------------------------------------------

    def get_object(
            self,
            hash_: str,
    ) -> ShaFile:
        """Read a single object.

        Raises:
            ObjectStoreError: If the object is missing.
        """
        try:
            return self._thread_repo().object_store[_to_sha(hash_)]
        except KeyError as missing_error:
            msg = f"Object {hash_} not found"
            raise ObjectStoreError(msg) from missing_error

    def get_objects(
            self,
            hashes: list[str],
    ) -> list[ShaFile]:
        """Read a batch of objects, preserving order."""
        return self._pool.map_ordered(self.get_object, hashes)

    def read_commit(
            self,
            hash_: str,
    ) -> CommitInfo:
        """Read and parse a commit."""
        return self.parse_commit(self.get_object(hash_))

    @staticmethod
    def parse_commit(
            obj: ShaFile,
    ) -> CommitInfo:
        """Convert a dulwich commit into a CommitInfo.

        Raises:
            ObjectStoreError: If obj is not a commit.
        """
        if not isinstance(obj, Commit):
            msg = f"Object {_to_hex(obj.id)} is a {obj.type_name.decode()}, not a commit"
            raise ObjectStoreError(msg)
        message = obj.message.decode(_message_encoding(obj), errors="replace")
        return CommitInfo(
            hash=_to_hex(obj.id),
            parents=tuple(_to_hex(parent) for parent in obj.parents),
            tree=_to_hex(obj.tree),
            message_lines=tuple(message.splitlines()),
            timestamp=obj.commit_time,
        )

    @staticmethod
    def parse_tree(
            obj: ShaFile,
    ) -> list[TreeEntry]:
        """List a dulwich tree's entries.

        Raises:
            ObjectStoreError: If obj is not a tree.
        """
        if not isinstance(obj, Tree):
            msg = f"Object {_to_hex(obj.id)} is a {obj.type_name.decode()}, not a tree"
            raise ObjectStoreError(msg)
        return [
            TreeEntry(
                mode=entry.mode,
                name=entry.path.decode("utf-8", errors="surrogateescape"),
                hash=_to_hex(entry.sha),
            )
            for entry in obj.items()
        ]

    # ---- Object Construction --------------------------------------------------------------------------------

    @staticmethod
    def create_tree(
            entries: list[TreeEntry],
    ) -> Tree:
        """Build an unwritten tree object; its hash is available as .id."""
        tree = Tree()
        for entry in entries:
            tree.add(
                entry.name.encode("utf-8", errors="surrogateescape"),
                entry.mode,
                _to_sha(entry.hash),
            )
        return tree

    def rewrite_commit(
            self,
            original: str,
            tree: str,
            parents: list[str],
            message_prefix: str = "",
    ) -> Commit:
        """Build an unwritten copy of a commit with a new tree and parents.

        Author, committer, their timestamps and timezones, and the message
        encoding are kept. The prefix is prepended to the first message
        line in the message encoding, or in utf-8 when that encoding cannot
        represent it; an empty message stays empty. Signatures are not
        carried over since they would no longer verify.

        Args:
            original: Hash of the commit to copy.
            tree: Tree hash for the new commit.
            parents: Parent hashes for the new commit.
            message_prefix: Text prepended to the message.

        Returns:
            New commit object; its hash is available as .id.
        """
        source = self.get_object(original)
        if not isinstance(source, Commit):
            msg = f"Object {original} is not a commit"
            raise ObjectStoreError(msg)

        commit = Commit()
        commit.tree = _to_sha(tree)
        commit.parents = [_to_sha(parent) for parent in parents]
        commit.author = source.author
        commit.committer = source.committer
        commit.author_time = source.author_time
        commit.author_timezone = source.author_timezone
        commit.commit_time = source.commit_time
        commit.commit_timezone = source.commit_timezone
        if source.encoding:
            commit.encoding = source.encoding

        message = source.message
        if message and message_prefix:
            try:
                prefix = message_prefix.encode(_message_encoding(source))
            except UnicodeEncodeError:
                prefix = message_prefix.encode("utf-8")
            message = prefix + message
        commit.message = message
        return commit

    # ---- Object Writes --------------------------------------------------------------------------------------

    def write_objects(
            self,
            objects: list[ShaFile],
    ) -> None:
        """Write a batch of objects; objects already stored are skipped.

        Raises:
            ObjectStoreError: If the store rejects the write.
        """
        store = self.repo.object_store
        unique: dict[bytes, ShaFile] = {}
        for obj in objects:
            if obj.id not in unique and obj.id not in store:
                unique[obj.id] = obj
        if not unique:
            return
        try:
            store.add_objects([(obj, None) for obj in unique.values()])
        except Exception as write_error:
            msg = f"Failed to write {len(unique)} objects: {write_error}"
            raise ObjectStoreError(msg) from write_error
        logger.debug(f"Wrote {len(unique)} objects")
