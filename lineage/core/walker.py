"""Revision history walker.

Turns a repository's newest-first commit list into Revisions. Each commit is
diffed by the connector; only paths in the snapshot filter (files present at
HEAD that the parser supports) are kept. Failures are isolated per unit:

- a commit whose changes cannot be read is skipped entirely
- a file that cannot be parsed keeps its ChangedFile, without a fingerprint

The oldest commit has nothing to be compared with and never becomes a
Revision.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from itertools import pairwise

from lineage.connectors.base import Connector
from lineage.core.exceptions import CommitLookupFailure, ParseError, WalkerStateError
from lineage.core.models import (
    ChangedFile,
    ChangedFileContent,
    ChangeType,
    CommitId,
    Revision,
    file_key,
)
from lineage.core.storage import compute_content_hash
from lineage.languages.base import FileParser
from lineage.logging import get_logger

LOGGER = get_logger(__name__)


class WalkState(Enum):
    """States of a RevisionWalker."""

    SCANNING = "scanning"
    PROCESSING = "processing"
    DONE = "done"


@dataclass(frozen=True)
class WalkFailure:
    """A commit or file that could not be processed."""

    commit_id: CommitId
    path: str | None
    message: str


@dataclass(frozen=True)
class FileOutcome:
    """Result of processing one changed file."""

    changed_file: ChangedFile
    content: ChangedFileContent | None = None
    error: str | None = None


@dataclass
class CommitOutcome:
    """Result of processing one commit."""

    commit_id: CommitId
    files: list[FileOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def revision(self) -> Revision | None:
        """The Revision for this commit, or None if it was skipped or touched nothing."""
        if self.error is not None or not self.files:
            return None
        return Revision(
            commit_id=self.commit_id,
            changed_files=tuple(f.changed_file for f in self.files),
        )


@dataclass
class WalkResult:
    """Everything a walk produced for one repository."""

    commits: int = 0
    revisions: list[Revision] = field(default_factory=list)
    contents: list[ChangedFileContent] = field(default_factory=list)
    failures: list[WalkFailure] = field(default_factory=list)


class ChangedFileResolver:
    """Restricts a commit's changes to the files in the snapshot filter."""

    def __init__(self, connector: Connector, snapshot: Iterable[str]) -> None:
        self._connector = connector
        self._snapshot = frozenset(snapshot)

    @property
    def snapshot(self) -> frozenset[str]:
        return self._snapshot

    def __contains__(self, path: str) -> bool:
        return path in self._snapshot

    def resolve(self, commit_id: CommitId) -> dict[str, ChangeType]:
        """Return the eligible changed paths of a commit.

        Raises:
            CommitLookupFailure: If the connector cannot read the commit
        """
        changes = self._connector.get_commit_file_changes(commit_id)
        return {path: change for path, change in changes.items() if path in self._snapshot}


def build_snapshot_filter(connector: Connector, parser: FileParser) -> frozenset[str]:
    """Collect the parseable files present at the most recent commit."""
    head = connector.most_recent_commit_id()
    return frozenset(path for path in connector.snapshot_files(head) if parser.supports(path))


class RevisionWalker:
    """Walks one repository's history once, producing Revisions newest first."""

    def __init__(
        self,
        repository: str,
        connector: Connector,
        parser: FileParser,
        resolver: ChangedFileResolver,
    ) -> None:
        self._repository = repository
        self._connector = connector
        self._parser = parser
        self._resolver = resolver
        self._state = WalkState.SCANNING

    @property
    def state(self) -> WalkState:
        return self._state

    def walk(self) -> WalkResult:
        """Walk every adjacent commit pair.

        Raises:
            CommitLookupFailure: If the commit list itself cannot be read
            WalkerStateError: If this walker already finished a walk
        """
        if self._state is WalkState.DONE:
            raise WalkerStateError(f"Walk of {self._repository} already finished")

        result = WalkResult()
        try:
            commit_ids = self._connector.all_commit_ids()
            result.commits = len(commit_ids)
            LOGGER.info("%s has %d commits", self._repository, len(commit_ids))

            for current, _previous in pairwise(commit_ids):
                self._state = WalkState.PROCESSING
                outcome = self.process_commit(current)
                self._state = WalkState.SCANNING
                self._collect(outcome, result)
        finally:
            self._state = WalkState.DONE

        return result

    def _collect(self, outcome: CommitOutcome, result: WalkResult) -> None:
        if outcome.error is not None:
            result.failures.append(WalkFailure(outcome.commit_id, None, outcome.error))
            return

        for file_outcome in outcome.files:
            if file_outcome.content is not None:
                result.contents.append(file_outcome.content)
            if file_outcome.error is not None:
                path = file_outcome.changed_file.path
                result.failures.append(WalkFailure(outcome.commit_id, path, file_outcome.error))

        revision = outcome.revision
        if revision is not None:
            result.revisions.append(revision)

    def process_commit(self, commit_id: CommitId) -> CommitOutcome:
        """Resolve and parse the eligible changed files of one commit."""
        try:
            changes = self._resolver.resolve(commit_id)
        except CommitLookupFailure as e:
            LOGGER.error("Skipping commit %s of %s: %s", commit_id, self._repository, e)
            return CommitOutcome(commit_id=commit_id, error=str(e))

        outcome = CommitOutcome(commit_id=commit_id)
        for path, change_type in changes.items():
            outcome.files.append(self.process_file(commit_id, path, change_type))
        return outcome

    def process_file(self, commit_id: CommitId, path: str, change_type: ChangeType) -> FileOutcome:
        """Parse one changed file; a failure keeps the ChangedFile without content."""
        if change_type is ChangeType.DELETED:
            LOGGER.debug("%s deleted in %s, nothing to parse", path, commit_id)
            return FileOutcome(changed_file=ChangedFile(path=path, change_type=change_type))

        try:
            unit = self._parser.parse(self._connector, commit_id, path)
        except ParseError as e:
            LOGGER.warning(
                "Cannot parse %s at %s in %s: %s", path, commit_id, self._repository, e
            )
            return FileOutcome(
                changed_file=ChangedFile(path=path, change_type=change_type),
                error=str(e),
            )

        payload = unit.to_json()
        fingerprint = compute_content_hash(payload)
        return FileOutcome(
            changed_file=ChangedFile(path=path, change_type=change_type, fingerprint=fingerprint),
            content=ChangedFileContent(
                file_key=file_key(self._repository, commit_id),
                path=path,
                fingerprint=fingerprint,
                payload=payload,
            ),
        )
