"""Protocol for language parsers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from lineage.connectors.base import Connector
    from lineage.core.models import CommitId
    from lineage.languages.models import ParsedUnit


class FileParser(Protocol):
    """Protocol for language parsers."""

    name: str

    def parse(self, repository: Connector, commit_id: CommitId, path: str) -> ParsedUnit:
        """Parse a file as it exists at a commit and extract its method calls."""
        ...

    def supports(self, path: str) -> bool:
        """Check if this parser supports the given path."""
        ...
