"""Changed-file content storage operations."""

from __future__ import annotations

import hashlib
import sqlite3
from collections.abc import Callable, Iterable

from lineage.core.models import ChangedFileContent


class ContentStorage:
    """Storage operations for parsed changed-file contents."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def save(self, contents: Iterable[ChangedFileContent]) -> int:
        """Insert or replace contents keyed by (file key, path). Returns count written."""
        conn = self._get_connection()
        with conn:
            return self.insert(conn, contents)

    def insert(self, conn: sqlite3.Connection, contents: Iterable[ChangedFileContent]) -> int:
        """Like save, inside the caller's transaction."""
        rows = [(c.file_key, c.path, c.fingerprint, c.payload) for c in contents]
        conn.executemany(
            """
            INSERT INTO contents (file_key, path, fingerprint, payload) VALUES (?, ?, ?, ?)
            ON CONFLICT(file_key, path) DO UPDATE SET
                fingerprint = excluded.fingerprint, payload = excluded.payload
            """,
            rows,
        )
        return len(rows)

    def get(self, file_key: str, path: str) -> ChangedFileContent | None:
        """Get the content of one file, or None if it was not stored."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM contents WHERE file_key = ? AND path = ?", (file_key, path)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return _content_from_row(row)

    def for_key(self, file_key: str) -> list[ChangedFileContent]:
        """Get every stored file of one commit."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM contents WHERE file_key = ? ORDER BY path", (file_key,)
        )
        return [_content_from_row(row) for row in cursor.fetchall()]

    def delete_for_repository(self, repository: str) -> int:
        """Delete the contents of every commit of a repository. Returns count deleted."""
        conn = self._get_connection()
        with conn:
            return self.delete_repository(conn, repository)

    def delete_repository(self, conn: sqlite3.Connection, repository: str) -> int:
        """Like delete_for_repository, inside the caller's transaction."""
        cursor = conn.execute(
            "DELETE FROM contents WHERE file_key LIKE ? ESCAPE '\\'",
            (_like_prefix(repository),),
        )
        return cursor.rowcount

    def clear(self) -> None:
        """Delete all contents."""
        conn = self._get_connection()
        conn.execute("DELETE FROM contents")
        conn.commit()


def _content_from_row(row: sqlite3.Row) -> ChangedFileContent:
    return ChangedFileContent(
        file_key=row["file_key"],
        path=row["path"],
        fingerprint=row["fingerprint"],
        payload=row["payload"],
    )


def _like_prefix(repository: str) -> str:
    escaped = repository.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}:%"


def compute_content_hash(payload: str) -> str:
    """Compute SHA-256 hash of a serialized parse result."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
