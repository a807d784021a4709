"""Repository that coordinates all storage operations."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from lineage.core.models import ChangedFileContent, Project, file_key
from lineage.core.storage.contents import ContentStorage
from lineage.core.storage.projects import ProjectStorage

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    uri TEXT NOT NULL,
    parser TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    snapshot TEXT NOT NULL DEFAULT '[]',
    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS revisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    commit_id TEXT NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS changed_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    revision_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    path TEXT NOT NULL,
    change_type TEXT NOT NULL,
    fingerprint TEXT,
    FOREIGN KEY (revision_id) REFERENCES revisions(id)
);

CREATE TABLE IF NOT EXISTS contents (
    file_key TEXT NOT NULL,
    path TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    payload TEXT NOT NULL,
    PRIMARY KEY (file_key, path)
);

CREATE INDEX IF NOT EXISTS idx_revisions_project ON revisions(project_id);
CREATE INDEX IF NOT EXISTS idx_changed_files_revision ON changed_files(revision_id);
CREATE INDEX IF NOT EXISTS idx_changed_files_path ON changed_files(path);
"""


class ProjectRepository:
    """Facade that coordinates projects and changed-file contents storage."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

        self.projects = ProjectStorage(self._get_connection)
        self.contents = ContentStorage(self._get_connection)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a database connection."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> ProjectRepository:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def save(self, project: Project, contents: Iterable[ChangedFileContent] = ()) -> None:
        """Store a finished project and the parsed contents of its changed files.

        Contents left over from an earlier run of the same repository are removed.
        All of it happens in one transaction: on failure the earlier record stays intact.
        """
        conn = self._get_connection()
        with conn:
            self.contents.delete_repository(conn, project.name)
            self.contents.insert(conn, contents)
            self.projects.insert(conn, project)

    def delete_project(self, name: str) -> None:
        """Delete a project and all its contents."""
        conn = self._get_connection()
        with conn:
            self.contents.delete_repository(conn, name)
            self.projects.remove(conn, name)

    def get_stats(self) -> dict[str, int | datetime | None]:
        """Get store statistics."""
        conn = self._get_connection()

        project_count = conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]
        revision_count = conn.execute("SELECT COUNT(*) FROM revisions").fetchone()[0]
        file_count = conn.execute("SELECT COUNT(*) FROM changed_files").fetchone()[0]
        content_count = conn.execute("SELECT COUNT(*) FROM contents").fetchone()[0]

        last_processed_row = conn.execute("SELECT MAX(processed_at) FROM projects").fetchone()[0]
        last_processed = datetime.fromisoformat(last_processed_row) if last_processed_row else None

        return {
            "projects": project_count,
            "revisions": revision_count,
            "changed_files": file_count,
            "contents": content_count,
            "last_processed": last_processed,
        }

    def export_dataset(self, output: Path) -> int:
        """Write every project as one JSON line, with parsed contents inlined.

        Returns:
            Number of projects written
        """
        output.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with output.open("w", encoding="utf-8") as fh:
            for name in self.projects.names():
                project = self.projects.get(name)
                fh.write(json.dumps(self._project_record(project), sort_keys=True))
                fh.write("\n")
                count += 1
        return count

    def _project_record(self, project: Project) -> dict[str, Any]:
        descriptor = project.descriptor
        revisions = []
        for revision in project.revisions:
            key = file_key(project.name, revision.commit_id)
            stored = {c.path: c for c in self.contents.for_key(key)}
            revisions.append(
                {
                    "commit_id": revision.commit_id,
                    "changed_files": [
                        {
                            "path": f.path,
                            "change_type": f.change_type.value,
                            "fingerprint": f.fingerprint,
                            "content": (
                                json.loads(stored[f.path].payload) if f.path in stored else None
                            ),
                        }
                        for f in revision.changed_files
                    ],
                }
            )
        return {
            "name": descriptor.name,
            "uri": descriptor.uri,
            "parser": descriptor.parser,
            "metadata": descriptor.metadata,
            "snapshot": list(project.snapshot),
            "revisions": revisions,
        }

    def clear(self) -> None:
        """Clear all data from the database."""
        self.contents.clear()
        self.projects.clear()


def get_default_db_path(project_root: Path) -> Path:
    """Get the default database path for a working directory."""
    return project_root / ".lineage" / "lineage.db"
