"""Git connector built on GitPython."""

from __future__ import annotations

import re
import shutil
import tempfile
from pathlib import Path

import git
import git.exc

from lineage.core.exceptions import CommitLookupFailure, ConnectionFailure, ContentNotFoundError
from lineage.core.models import ChangeType, CommitId
from lineage.logging import get_logger

LOGGER = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

_LOOKUP_ERRORS = (git.exc.GitError, git.exc.ODBError, ValueError)


class GitConnector:
    """Connector for local Git repositories and remote URLs.

    Local paths are opened in place. Anything else is cloned (bare) into
    ``workdir``, or into a temporary directory removed by ``close``.
    """

    name = "git"

    def __init__(self, workdir: Path | None = None, clone_timeout: float | None = None) -> None:
        self._workdir = workdir
        self._clone_timeout = clone_timeout
        self._repo: git.Repo | None = None
        self._tempdir: Path | None = None

    @property
    def repo(self) -> git.Repo:
        if self._repo is None:
            raise ConnectionFailure("Connector is not connected to a repository")
        return self._repo

    def connect(self, uri: str) -> None:
        """Open a local repository or clone a remote one."""
        try:
            local = Path(uri).expanduser()
            if local.exists():
                self._repo = git.Repo(local)
            else:
                target = self._clone_target(uri)
                LOGGER.info("Cloning %s into %s", uri, target)
                self._repo = git.Repo.clone_from(
                    uri, target, bare=True, kill_after_timeout=self._clone_timeout
                )
        except (git.exc.GitError, OSError) as e:
            raise ConnectionFailure(f"Cannot connect to {uri}: {e}") from e

    def _clone_target(self, uri: str) -> Path:
        """Pick a fresh directory for a clone of ``uri``."""
        if self._workdir is None:
            self._tempdir = Path(tempfile.mkdtemp(prefix="lineage-"))
            base = self._tempdir
        else:
            base = self._workdir
            base.mkdir(parents=True, exist_ok=True)

        target = base / _UNSAFE_CHARS.sub("_", uri.rstrip("/")).strip("_")
        if target.exists():
            shutil.rmtree(target)
        return target

    def close(self) -> None:
        """Close the repository and remove a temporary clone."""
        if self._repo is not None:
            self._repo.close()
            self._repo = None
        if self._tempdir is not None:
            shutil.rmtree(self._tempdir, ignore_errors=True)
            self._tempdir = None

    def __enter__(self) -> GitConnector:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def _commit(self, commit_id: CommitId) -> git.Commit:
        return self.repo.commit(commit_id)

    def most_recent_commit_id(self) -> CommitId:
        try:
            return self.repo.head.commit.hexsha
        except _LOOKUP_ERRORS as e:
            raise CommitLookupFailure(f"Cannot resolve HEAD: {e}") from e

    def all_commit_ids(self) -> list[CommitId]:
        try:
            return [commit.hexsha for commit in self.repo.iter_commits()]
        except _LOOKUP_ERRORS as e:
            raise CommitLookupFailure(f"Cannot list commits: {e}") from e

    def snapshot_files(self, commit_id: CommitId) -> set[str]:
        try:
            tree = self._commit(commit_id).tree
            return {item.path for item in tree.traverse() if item.type == "blob"}
        except _LOOKUP_ERRORS as e:
            raise CommitLookupFailure(f"Cannot list files of {commit_id}: {e}") from e

    def get_commit_file_changes(self, commit_id: CommitId) -> dict[str, ChangeType]:
        """Diff a commit against its first parent (root commits against the empty tree)."""
        try:
            commit = self._commit(commit_id)
            if commit.parents:
                diffs = commit.parents[0].diff(commit)
            else:
                diffs = commit.diff(git.NULL_TREE, R=True)
        except _LOOKUP_ERRORS as e:
            raise CommitLookupFailure(f"Cannot diff {commit_id}: {e}") from e

        changes: dict[str, ChangeType] = {}
        for diff in diffs:
            change_type = ChangeType.from_git(diff.change_type)
            path = diff.a_path if change_type is ChangeType.DELETED else diff.b_path
            if path:
                changes[path] = change_type
        return changes

    def file_content(self, commit_id: CommitId, path: str) -> bytes:
        try:
            blob = self._commit(commit_id).tree / path
            return blob.data_stream.read()
        except KeyError as e:
            raise ContentNotFoundError(f"{path} does not exist at {commit_id}") from e
        except _LOOKUP_ERRORS as e:
            raise ContentNotFoundError(f"Cannot read {path} at {commit_id}: {e}") from e
