"""
Core module: data models, exceptions, metadata, and storage.

This module provides the foundational types and persistence layer:

Models (models.py):
    - RepositoryDescriptor: One repository entry from the metadata source
    - Revision / ChangedFile: Eligible files changed by one commit
    - Project: A repository and its revisions, newest first

Exceptions (exceptions.py):
    - LineageError: Base exception for all lineage errors
    - ConnectionFailure / CommitLookupFailure / ParseError: Per-level failures
    - MetadataError: The metadata source is malformed

Metadata (metadata.py):
    - MetadataSource: Lazy, restartable iteration over repository descriptors

Storage (storage/):
    - ProjectRepository: Facade for all database operations
    - Uses SQLite for persistence in .lineage/lineage.db

The history walk itself lives in walker.py and processor.py.
"""

from lineage.core.exceptions import (
    CommitLookupFailure,
    ConfigurationError,
    ConnectionFailure,
    ContentNotFoundError,
    LineageError,
    MetadataError,
    ParseError,
    ProjectNotFoundError,
    WalkerStateError,
)
from lineage.core.metadata import MetadataSource
from lineage.core.models import (
    ChangedFile,
    ChangedFileContent,
    ChangeType,
    CommitId,
    ProcessStats,
    Project,
    RepositoryDescriptor,
    Revision,
)
from lineage.core.storage import (
    ProjectRepository,
    compute_content_hash,
    get_default_db_path,
)

__all__ = [
    # Models
    "ChangeType",
    "ChangedFile",
    "ChangedFileContent",
    "CommitId",
    "ProcessStats",
    "Project",
    "RepositoryDescriptor",
    "Revision",
    # Exceptions
    "LineageError",
    "ConfigurationError",
    "MetadataError",
    "ConnectionFailure",
    "CommitLookupFailure",
    "ContentNotFoundError",
    "ParseError",
    "ProjectNotFoundError",
    "WalkerStateError",
    # Metadata
    "MetadataSource",
    # Storage
    "ProjectRepository",
    "compute_content_hash",
    "get_default_db_path",
]
