"""
Storage layer: SQLite persistence for project histories.

This module provides database operations split by concern:

Components:
    - ProjectRepository: Main facade that coordinates all storage
    - ProjectStorage: Projects with their revisions and changed files
    - ContentStorage: Parsed contents of changed files, keyed by commit and path

Database Schema:
    projects: id, name, uri, parser, metadata, snapshot, processed_at
    revisions: id, project_id, position, commit_id
    changed_files: id, revision_id, position, path, change_type, fingerprint
    contents: file_key, path, fingerprint, payload

The database is stored at .lineage/lineage.db relative to the working directory.
"""

from lineage.core.storage.contents import ContentStorage, compute_content_hash
from lineage.core.storage.projects import ProjectStorage
from lineage.core.storage.repository import ProjectRepository, get_default_db_path

__all__ = [
    "ProjectRepository",
    "ProjectStorage",
    "ContentStorage",
    "compute_content_hash",
    "get_default_db_path",
]
