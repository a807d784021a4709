"""Assembles the project model of one repository."""

from __future__ import annotations

from collections.abc import Iterable

from lineage.core.models import Project, RepositoryDescriptor, Revision


def assemble_project(
    descriptor: RepositoryDescriptor,
    revisions: Iterable[Revision],
    snapshot: Iterable[str] = (),
) -> Project:
    """Combine a descriptor, its revisions (newest first) and the snapshot baseline."""
    return Project(
        descriptor=descriptor,
        revisions=tuple(revisions),
        snapshot=tuple(sorted(snapshot)),
    )
