"""
Connectors: Read access to version-control history.

Components:
    - Connector: Protocol every backend implements
    - GitConnector: GitPython-based backend for local paths and remote URLs
    - get_connector: Create a connector by backend name
"""

from __future__ import annotations

from pathlib import Path

from lineage.connectors.base import Connector
from lineage.connectors.git_connector import GitConnector
from lineage.core.exceptions import ConfigurationError

CONNECTORS: dict[str, type[GitConnector]] = {
    GitConnector.name: GitConnector,
}


def get_connector(
    name: str = "git", workdir: Path | None = None, clone_timeout: float | None = None
) -> Connector:
    """Create a connector for a version-control backend."""
    try:
        connector_cls = CONNECTORS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(CONNECTORS))
        raise ConfigurationError(f"Unknown connector type '{name}' (known: {known})") from None
    return connector_cls(workdir=workdir, clone_timeout=clone_timeout)


__all__ = ["CONNECTORS", "Connector", "GitConnector", "get_connector"]
