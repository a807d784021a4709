"""Shared fixtures: an in-memory connector with a scripted history."""

from __future__ import annotations

from collections.abc import Callable, Iterable

import pytest

from lineage.core.exceptions import CommitLookupFailure, ConnectionFailure, ContentNotFoundError
from lineage.core.models import ChangeType


class FakeConnector:
    """Connector serving a fixed history.

    ``commits`` is newest first; ``changes`` maps commit -> {path: ChangeType};
    ``contents`` maps (commit, path) -> source text.
    """

    def __init__(
        self,
        commits: list[str],
        changes: dict[str, dict[str, ChangeType]] | None = None,
        snapshot: Iterable[str] = (),
        contents: dict[tuple[str, str], str] | None = None,
        failing_commits: Iterable[str] = (),
        fail_connect: bool = False,
        fail_listing: bool = False,
        fail_snapshot: bool = False,
    ) -> None:
        self.commits = commits
        self.changes = changes or {}
        self.snapshot = set(snapshot)
        self.contents = contents or {}
        self.failing_commits = set(failing_commits)
        self.fail_connect = fail_connect
        self.fail_listing = fail_listing
        self.fail_snapshot = fail_snapshot
        self.connected_to: str | None = None
        self.closed = False
        self.lookups: list[str] = []

    def connect(self, uri: str) -> None:
        if self.fail_connect:
            raise ConnectionFailure(f"Cannot connect to {uri}")
        self.connected_to = uri

    def most_recent_commit_id(self) -> str:
        if self.fail_snapshot:
            raise CommitLookupFailure("HEAD is unreadable")
        return self.commits[0]

    def all_commit_ids(self) -> list[str]:
        if self.fail_listing:
            raise CommitLookupFailure("Cannot list commits")
        return list(self.commits)

    def snapshot_files(self, commit_id: str) -> set[str]:
        return set(self.snapshot)

    def get_commit_file_changes(self, commit_id: str) -> dict[str, ChangeType]:
        self.lookups.append(commit_id)
        if commit_id in self.failing_commits:
            raise CommitLookupFailure(f"Commit {commit_id} is unreachable")
        return dict(self.changes.get(commit_id, {}))

    def file_content(self, commit_id: str, path: str) -> bytes:
        try:
            return self.contents[(commit_id, path)].encode("utf-8")
        except KeyError:
            raise ContentNotFoundError(f"{path} does not exist at {commit_id}") from None

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_connector() -> Callable[..., FakeConnector]:
    """Factory for scripted connectors."""
    return FakeConnector
