"""Data models for Lineage."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

CommitId = str


class ChangeType(Enum):
    """How a file changed in a commit."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type_changed"
    UNKNOWN = "unknown"

    @classmethod
    def from_git(cls, letter: str | None) -> ChangeType:
        """Map a git diff status letter (A, M, D, R, C, T) to a change type."""
        if not letter:
            return cls.UNKNOWN
        return _GIT_CHANGE_TYPES.get(letter[0].upper(), cls.UNKNOWN)


_GIT_CHANGE_TYPES = {
    "A": ChangeType.ADDED,
    "M": ChangeType.MODIFIED,
    "D": ChangeType.DELETED,
    "R": ChangeType.RENAMED,
    "C": ChangeType.COPIED,
    "T": ChangeType.TYPE_CHANGED,
}


@dataclass(frozen=True)
class RepositoryDescriptor:
    """One repository entry from the metadata source."""

    name: str
    uri: str
    parser: str = "python"
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ChangedFile:
    """One eligible file changed by a commit."""

    path: str
    change_type: ChangeType
    fingerprint: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ChangedFile:
        """Create a ChangedFile from a database row."""
        return cls(
            path=row["path"],
            change_type=ChangeType(row["change_type"]),
            fingerprint=row["fingerprint"],
        )


@dataclass(frozen=True)
class Revision:
    """A commit together with the eligible files it changed."""

    commit_id: CommitId
    changed_files: tuple[ChangedFile, ...]


@dataclass(frozen=True)
class ChangedFileContent:
    """Serialized parse result of one changed file at one commit."""

    file_key: str
    path: str
    fingerprint: str
    payload: str


@dataclass(frozen=True)
class Project:
    """A repository and its revision history, newest first."""

    descriptor: RepositoryDescriptor
    revisions: tuple[Revision, ...]
    snapshot: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True)
class ProjectSummary:
    """A stored project without its revisions."""

    name: str
    uri: str
    parser: str
    revisions: int
    processed_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ProjectSummary:
        """Create a ProjectSummary from a database row."""
        return cls(
            name=row["name"],
            uri=row["uri"],
            parser=row["parser"],
            revisions=row["revision_count"],
            processed_at=row["processed_at"],
        )


def file_key(repository: str, commit_id: CommitId) -> str:
    """Key under which the changed-file contents of one commit are stored."""
    return f"{repository}:{commit_id}"


class ProcessStats:
    """Statistics from a processing run."""

    def __init__(self) -> None:
        self.repositories: int = 0
        self.projects: int = 0
        self.revisions: int = 0
        self.changed_files: int = 0
        self.skipped_repositories: int = 0
        self.aborted: bool = False
        self.errors: list[str] = []

    def __repr__(self) -> str:
        return (
            f"ProcessStats(repositories={self.repositories}, projects={self.projects}, "
            f"revisions={self.revisions}, changed_files={self.changed_files}, "
            f"skipped_repositories={self.skipped_repositories}, "
            f"aborted={self.aborted}, errors={len(self.errors)})"
        )
