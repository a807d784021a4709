"""Repository metadata source."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath
from typing import Any

from lineage.core.exceptions import MetadataError
from lineage.core.models import RepositoryDescriptor

_LOCATION_KEYS = ("repository", "url", "clone_url", "html_url", "codeRepository")

DEFAULT_PARSER = "python"


class MetadataSource:
    """Lazy, restartable sequence of repository descriptors read from a file.

    ``.jsonl`` files are read one line at a time; any other file must hold a
    JSON array of entries, or an object with a ``repositories`` array.
    When ``repositories`` is given, every entry must reference one of them.
    """

    def __init__(self, path: Path, repositories: Iterable[str] | None = None) -> None:
        self._path = path
        self._repositories: set[str] | None = None
        if repositories is not None:
            self._repositories = {_normalize(r) for r in repositories}

    @property
    def path(self) -> Path:
        return self._path

    def __iter__(self) -> Iterator[RepositoryDescriptor]:
        allowed = self._repositories
        for position, entry in self._entries():
            descriptor = descriptor_from_entry(entry, position)
            if allowed is not None and _normalize(descriptor.uri) not in allowed:
                raise MetadataError(
                    f"{self._path}: entry {position} references {descriptor.uri}, "
                    "which is not in the repository list"
                )
            yield descriptor

    def _entries(self) -> Iterator[tuple[int, Any]]:
        try:
            if self._path.suffix == ".jsonl":
                yield from self._json_lines()
            else:
                yield from enumerate(self._json_document(), start=1)
        except OSError as e:
            raise MetadataError(f"Cannot read metadata file {self._path}: {e}") from e

    def _json_lines(self) -> Iterator[tuple[int, Any]]:
        with self._path.open(encoding="utf-8") as fh:
            for line_number, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    yield line_number, json.loads(line)
                except json.JSONDecodeError as e:
                    raise MetadataError(f"{self._path}:{line_number}: invalid JSON: {e}") from e

    def _json_document(self) -> list[Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise MetadataError(f"{self._path}: invalid JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("repositories")
        if not isinstance(data, list):
            raise MetadataError(f"{self._path} must contain a list of repositories")
        return data


def descriptor_from_entry(entry: Any, position: int = 0) -> RepositoryDescriptor:
    """Build a descriptor from one metadata entry."""
    if not isinstance(entry, dict):
        raise MetadataError(f"Metadata entry {position} is not an object")

    uri = next((entry[key] for key in _LOCATION_KEYS if isinstance(entry.get(key), str)), None)
    if not uri:
        keys = ", ".join(_LOCATION_KEYS)
        raise MetadataError(f"Metadata entry {position} has no repository location ({keys})")

    name = entry.get("name") or _name_from_uri(uri)
    parser = entry.get("parser") or DEFAULT_PARSER
    extra = {
        key: value
        for key, value in entry.items()
        if key not in _LOCATION_KEYS and key not in ("name", "parser")
    }
    return RepositoryDescriptor(name=str(name), uri=uri, parser=str(parser), metadata=extra)


def _name_from_uri(uri: str) -> str:
    name = PurePosixPath(uri.rstrip("/")).name
    return name[: -len(".git")] if name.endswith(".git") else name


def _normalize(uri: str) -> str:
    uri = uri.strip().rstrip("/")
    return uri[: -len(".git")] if uri.endswith(".git") else uri
