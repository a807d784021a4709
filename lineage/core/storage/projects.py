"""Project storage operations."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable

from lineage.core.exceptions import ProjectNotFoundError
from lineage.core.models import (
    ChangedFile,
    Project,
    ProjectSummary,
    RepositoryDescriptor,
    Revision,
)


class ProjectStorage:
    """Storage operations for projects, their revisions and changed files."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def save(self, project: Project) -> int:
        """Store a project, replacing an earlier record with the same name. Returns its ID."""
        conn = self._get_connection()
        with conn:
            return self.insert(conn, project)

    def insert(self, conn: sqlite3.Connection, project: Project) -> int:
        """Like save, inside the caller's transaction."""
        descriptor = project.descriptor
        self.remove(conn, project.name)
        cursor = conn.execute(
            """
            INSERT INTO projects (name, uri, parser, metadata, snapshot, processed_at)
            VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            (
                descriptor.name,
                descriptor.uri,
                descriptor.parser,
                json.dumps(descriptor.metadata, sort_keys=True, default=str),
                json.dumps(list(project.snapshot)),
            ),
        )
        project_id: int = cursor.lastrowid  # type: ignore[assignment]

        for position, revision in enumerate(project.revisions):
            cursor = conn.execute(
                "INSERT INTO revisions (project_id, position, commit_id) VALUES (?, ?, ?)",
                (project_id, position, revision.commit_id),
            )
            revision_id = cursor.lastrowid
            conn.executemany(
                """
                INSERT INTO changed_files
                    (revision_id, position, path, change_type, fingerprint)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (revision_id, i, f.path, f.change_type.value, f.fingerprint)
                    for i, f in enumerate(revision.changed_files)
                ],
            )
        return project_id

    def get(self, name: str) -> Project:
        """Load a project with all its revisions."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM projects WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise ProjectNotFoundError(f"Project '{name}' not found")

        descriptor = RepositoryDescriptor(
            name=row["name"],
            uri=row["uri"],
            parser=row["parser"],
            metadata=json.loads(row["metadata"]),
        )

        files: dict[int, list[ChangedFile]] = {}
        cursor = conn.execute(
            """
            SELECT c.* FROM changed_files c
            JOIN revisions r ON r.id = c.revision_id
            WHERE r.project_id = ?
            ORDER BY c.revision_id, c.position
            """,
            (row["id"],),
        )
        for file_row in cursor.fetchall():
            files.setdefault(file_row["revision_id"], []).append(ChangedFile.from_row(file_row))

        cursor = conn.execute(
            "SELECT * FROM revisions WHERE project_id = ? ORDER BY position", (row["id"],)
        )
        revisions = tuple(
            Revision(
                commit_id=rev["commit_id"],
                changed_files=tuple(files.get(rev["id"], [])),
            )
            for rev in cursor.fetchall()
        )
        return Project(
            descriptor=descriptor,
            revisions=revisions,
            snapshot=tuple(json.loads(row["snapshot"])),
        )

    def summaries(self) -> list[ProjectSummary]:
        """List stored projects by name."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT p.*, COUNT(r.id) AS revision_count
            FROM projects p LEFT JOIN revisions r ON r.project_id = p.id
            GROUP BY p.id
            ORDER BY p.name
            """
        )
        return [ProjectSummary.from_row(row) for row in cursor.fetchall()]

    def names(self) -> list[str]:
        conn = self._get_connection()
        return [row[0] for row in conn.execute("SELECT name FROM projects ORDER BY name")]

    def delete(self, name: str) -> None:
        """Delete a project and its revisions."""
        conn = self._get_connection()
        with conn:
            self.remove(conn, name)

    def remove(self, conn: sqlite3.Connection, name: str) -> None:
        """Like delete, inside the caller's transaction."""
        row = conn.execute("SELECT id FROM projects WHERE name = ?", (name,)).fetchone()
        if row is None:
            return
        conn.execute(
            """
            DELETE FROM changed_files
            WHERE revision_id IN (SELECT id FROM revisions WHERE project_id = ?)
            """,
            (row["id"],),
        )
        conn.execute("DELETE FROM revisions WHERE project_id = ?", (row["id"],))
        conn.execute("DELETE FROM projects WHERE id = ?", (row["id"],))

    def clear(self) -> None:
        """Delete all projects."""
        conn = self._get_connection()
        with conn:
            conn.execute("DELETE FROM changed_files")
            conn.execute("DELETE FROM revisions")
            conn.execute("DELETE FROM projects")
