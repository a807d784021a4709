"""Protocol for version-control connectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from lineage.core.models import ChangeType, CommitId


class Connector(Protocol):
    """Read access to one repository's history.

    ``connect`` is called once before any other method. Failures are raised
    as ``ConnectionFailure`` (connect), ``CommitLookupFailure`` (history and
    diffs) and ``ContentNotFoundError`` (file contents).
    """

    def connect(self, uri: str) -> None:
        """Open the repository at a local path or remote URL."""
        ...

    def most_recent_commit_id(self) -> CommitId:
        """Return the commit the repository's HEAD points to."""
        ...

    def all_commit_ids(self) -> list[CommitId]:
        """Return every commit reachable from HEAD, newest first."""
        ...

    def snapshot_files(self, commit_id: CommitId) -> set[str]:
        """Return the paths of all files present at a commit."""
        ...

    def get_commit_file_changes(self, commit_id: CommitId) -> dict[str, ChangeType]:
        """Return the files a commit changed, keyed by path."""
        ...

    def file_content(self, commit_id: CommitId, path: str) -> bytes:
        """Return the raw content of a file at a commit."""
        ...

    def close(self) -> None:
        """Release any resources held by the connection."""
        ...
