"""Lineage custom exceptions."""


class LineageError(Exception):
    """Base exception for Lineage errors."""


class ConfigurationError(LineageError):
    """Unknown parser or connector type, or an invalid setting."""


class MetadataError(LineageError):
    """The repository metadata source is malformed or inconsistent."""


class ConnectionFailure(LineageError):
    """A repository could not be opened or cloned."""


class CommitLookupFailure(LineageError):
    """Commits or the changes of a commit could not be read."""


class ContentNotFoundError(LineageError):
    """A file blob does not exist at the requested commit."""


class ParseError(LineageError):
    """Error parsing a source file."""


class WalkerStateError(LineageError):
    """A revision walker was asked to walk again after finishing."""


class ProjectNotFoundError(LineageError):
    """Project not found in the store."""
