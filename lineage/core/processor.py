"""Processor that walks every repository of a metadata source and stores the projects."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from lineage.connectors import Connector, get_connector
from lineage.core.assembler import assemble_project
from lineage.core.exceptions import (
    CommitLookupFailure,
    ConfigurationError,
    ConnectionFailure,
    MetadataError,
)
from lineage.core.models import ChangedFileContent, ProcessStats, Project, RepositoryDescriptor
from lineage.core.storage import ProjectRepository
from lineage.core.walker import (
    ChangedFileResolver,
    RevisionWalker,
    WalkFailure,
    build_snapshot_filter,
)
from lineage.languages import FileParser, get_parser
from lineage.logging import get_logger

LOGGER = get_logger(__name__)

ConnectorFactory = Callable[[], Connector]
ParserFactory = Callable[[str], FileParser]
ProgressCallback = Callable[[RepositoryDescriptor, "RepositoryResult"], None]


@dataclass
class RepositoryResult:
    """Outcome of processing one repository.

    ``project`` is None when the repository failed as a whole; ``error`` then says why.
    """

    descriptor: RepositoryDescriptor
    project: Project | None = None
    contents: list[ChangedFileContent] = field(default_factory=list)
    failures: list[WalkFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


class Processor:
    """Builds and stores one Project per repository descriptor.

    Repositories are independent: with ``workers`` above one each runs on
    its own worker thread, while all storage happens on the calling thread
    in metadata order. ``timeout`` bounds how long a single repository may
    run once it has started.

    Projects are stored by name, so a descriptor whose name was already
    used earlier in the run is skipped.
    """

    def __init__(
        self,
        store: ProjectRepository,
        connector_factory: ConnectorFactory | None = None,
        parser_factory: ParserFactory = get_parser,
        workers: int = 1,
        timeout: float | None = None,
    ) -> None:
        if workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {workers}")
        self._store = store
        self._connector_factory = connector_factory or get_connector
        self._parser_factory = parser_factory
        self._workers = workers
        self._timeout = timeout

    def process(
        self,
        source: Iterable[RepositoryDescriptor],
        on_progress: ProgressCallback | None = None,
    ) -> ProcessStats:
        """Process every repository of a metadata source.

        A MetadataError ends the run; projects stored before it are kept and
        ``aborted`` is set on the returned stats.
        """
        stats = ProcessStats()
        unique = self._unique(source, stats, on_progress)
        try:
            if self._workers == 1:
                for descriptor in unique:
                    self._record(self.process_repository(descriptor), stats, on_progress)
            else:
                self._process_concurrently(unique, stats, on_progress)
        except MetadataError as e:
            LOGGER.error("Stopping run: %s", e)
            stats.aborted = True
            stats.errors.append(str(e))

        LOGGER.info(
            "Finished processing %d repositories (%d projects, %d revisions)",
            stats.repositories,
            stats.projects,
            stats.revisions,
        )
        return stats

    def _unique(
        self,
        source: Iterable[RepositoryDescriptor],
        stats: ProcessStats,
        on_progress: ProgressCallback | None,
    ) -> Iterator[RepositoryDescriptor]:
        """Yield descriptors whose project name has not been used yet in this run."""
        seen: dict[str, str] = {}
        for descriptor in source:
            if descriptor.name in seen:
                owner = seen[descriptor.name]
                message = f"project name '{descriptor.name}' already used by {owner}"
                LOGGER.error("Skipping repository %s: %s", descriptor.uri, message)
                self._record(RepositoryResult(descriptor, error=message), stats, on_progress)
                continue
            seen[descriptor.name] = descriptor.uri
            yield descriptor

    def _process_concurrently(
        self,
        source: Iterable[RepositoryDescriptor],
        stats: ProcessStats,
        on_progress: ProgressCallback | None,
    ) -> None:
        pool = _RepositoryPool(self.process_repository, self._workers, self._timeout)
        try:
            for descriptor in source:
                for result in pool.submit(descriptor):
                    self._record(result, stats, on_progress)
        finally:
            for result in pool.drain():
                self._record(result, stats, on_progress)

    def process_repository(self, descriptor: RepositoryDescriptor) -> RepositoryResult:
        """Connect, walk and assemble one repository. Storage is left to the caller.

        Never raises: any failure is returned as the result's ``error``.
        """
        try:
            return self._process_repository(descriptor)
        except Exception as e:
            LOGGER.exception("Skipping repository %s: unexpected error", descriptor.uri)
            return RepositoryResult(descriptor=descriptor, error=f"unexpected error: {e!r}")

    def _process_repository(self, descriptor: RepositoryDescriptor) -> RepositoryResult:
        try:
            parser = self._parser_factory(descriptor.parser)
        except ConfigurationError as e:
            LOGGER.error("Skipping repository %s: %s", descriptor.uri, e)
            return RepositoryResult(descriptor=descriptor, error=str(e))

        connector = self._connector_factory()
        try:
            try:
                connector.connect(descriptor.uri)
            except ConnectionFailure as e:
                LOGGER.error("Skipping repository %s: %s", descriptor.uri, e)
                return RepositoryResult(descriptor=descriptor, error=str(e))

            result = RepositoryResult(descriptor=descriptor)
            try:
                snapshot = build_snapshot_filter(connector, parser)
            except CommitLookupFailure as e:
                LOGGER.error("Cannot read the latest snapshot of %s: %s", descriptor.uri, e)
                result.warnings.append(f"snapshot: {e}")
                snapshot = frozenset()

            walker = RevisionWalker(
                descriptor.name, connector, parser, ChangedFileResolver(connector, snapshot)
            )
            try:
                walk = walker.walk()
            except CommitLookupFailure as e:
                LOGGER.error("Skipping repository %s: %s", descriptor.uri, e)
                result.error = str(e)
                return result

            result.project = assemble_project(descriptor, walk.revisions, snapshot)
            result.contents = walk.contents
            result.failures = walk.failures
            return result
        finally:
            connector.close()

    def _record(
        self,
        result: RepositoryResult,
        stats: ProcessStats,
        on_progress: ProgressCallback | None,
    ) -> None:
        name = result.descriptor.name
        stats.repositories += 1
        stats.errors.extend(f"{name}: {warning}" for warning in result.warnings)

        if result.project is None:
            stats.skipped_repositories += 1
            stats.errors.append(f"{name}: {result.error}")
        else:
            self._store.save(result.project, result.contents)
            stats.projects += 1
            stats.revisions += len(result.project.revisions)
            stats.changed_files += sum(len(r.changed_files) for r in result.project.revisions)
            for failure in result.failures:
                location = failure.commit_id
                if failure.path:
                    location = f"{location}:{failure.path}"
                stats.errors.append(f"{name}@{location}: {failure.message}")

        if on_progress:
            on_progress(result.descriptor, result)


class _Task:
    """One repository running on its own worker thread."""

    def __init__(self, descriptor: RepositoryDescriptor) -> None:
        self.descriptor = descriptor
        self.started = time.monotonic()
        self.result: RepositoryResult | None = None

    def remaining(self, timeout: float | None) -> float | None:
        if timeout is None:
            return None
        return timeout - (time.monotonic() - self.started)

    def busy(self, timeout: float | None) -> bool:
        """Still running and within its time budget."""
        remaining = self.remaining(timeout)
        return self.result is None and (remaining is None or remaining > 0)


class _RepositoryPool:
    """Runs repositories on daemon threads, at most ``workers`` at a time.

    A repository's time budget starts when its thread starts, not while it
    waits for a free worker. A repository over budget is abandoned: it no
    longer occupies a worker, its result is discarded, and since its thread
    is a daemon it cannot keep the interpreter alive.
    """

    def __init__(
        self,
        work: Callable[[RepositoryDescriptor], RepositoryResult],
        workers: int,
        timeout: float | None,
    ) -> None:
        self._work = work
        self._workers = workers
        self._timeout = timeout
        self._changed = threading.Condition()
        self._window: deque[_Task] = deque()

    def submit(self, descriptor: RepositoryDescriptor) -> list[RepositoryResult]:
        """Start a repository once a worker is free.

        Returns the results that became final, in submission order.
        """
        with self._changed:
            while sum(task.busy(self._timeout) for task in self._window) >= self._workers:
                self._changed.wait(self._next_deadline())

            task = _Task(descriptor)
            self._window.append(task)
            threading.Thread(
                target=self._run, args=(task,), name=f"lineage-{descriptor.name}", daemon=True
            ).start()
            return self._settled()

    def drain(self) -> Iterator[RepositoryResult]:
        """Wait for every submitted repository and yield results in submission order."""
        while True:
            with self._changed:
                if not self._window:
                    return
                head = self._window[0]
                while head.busy(self._timeout):
                    self._changed.wait(head.remaining(self._timeout))
                result = self._pop()
            yield result

    def _run(self, task: _Task) -> None:
        result = self._work(task.descriptor)
        with self._changed:
            task.result = result
            self._changed.notify_all()

    def _next_deadline(self) -> float | None:
        budgets = [task.remaining(self._timeout) for task in self._window]
        pending = [b for b in budgets if b is not None and b > 0]
        return min(pending) if pending else None

    def _settled(self) -> list[RepositoryResult]:
        results = []
        while self._window and not self._window[0].busy(self._timeout):
            results.append(self._pop())
        return results

    def _pop(self) -> RepositoryResult:
        task = self._window.popleft()
        if task.result is not None:
            return task.result
        message = f"timed out after {self._timeout}s"
        LOGGER.error("Abandoning repository %s: %s", task.descriptor.uri, message)
        return RepositoryResult(descriptor=task.descriptor, error=message)
