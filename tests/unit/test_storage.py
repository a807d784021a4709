"""Tests for the SQLite project store."""

import json
import sqlite3
import tempfile
from pathlib import Path

import pytest

from lineage.core.models import (
    ChangedFile,
    ChangedFileContent,
    ChangeType,
    Project,
    RepositoryDescriptor,
    Revision,
    file_key,
)
from lineage.core.storage import ProjectRepository, compute_content_hash, get_default_db_path
from lineage.languages import PythonParser


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def repository(temp_dir: Path):
    with ProjectRepository(get_default_db_path(temp_dir)) as repo:
        yield repo


def content_for(repository: str, commit: str, path: str, source: str) -> ChangedFileContent:
    payload = PythonParser().parse_source(source, path).to_json()
    return ChangedFileContent(
        file_key=file_key(repository, commit),
        path=path,
        fingerprint=compute_content_hash(payload),
        payload=payload,
    )


@pytest.fixture
def sample(temp_dir: Path) -> tuple[Project, list[ChangedFileContent]]:
    """A project with two revisions and the parsed content of one file."""
    content = content_for("svc", "c2", "app.py", "def run():\n    save(load(x))\n")
    project = Project(
        descriptor=RepositoryDescriptor(
            name="svc", uri="/repos/svc", metadata={"stars": 3, "topics": ["web"]}
        ),
        revisions=(
            Revision(
                commit_id="c3",
                changed_files=(ChangedFile("old.py", ChangeType.DELETED),),
            ),
            Revision(
                commit_id="c2",
                changed_files=(
                    ChangedFile("app.py", ChangeType.MODIFIED, content.fingerprint),
                    ChangedFile("broken.py", ChangeType.ADDED),
                ),
            ),
        ),
        snapshot=("app.py", "broken.py"),
    )
    return project, [content]


class TestProjectStorage:
    """Tests for storing projects and their revisions."""

    def test_save_and_get(self, repository: ProjectRepository, sample) -> None:
        project, contents = sample

        repository.save(project, contents)
        loaded = repository.projects.get("svc")

        assert loaded == project
        assert loaded.descriptor.metadata == {"stars": 3, "topics": ["web"]}

    def test_revision_order_is_kept(self, repository: ProjectRepository, sample) -> None:
        project, contents = sample
        repository.save(project, contents)

        loaded = repository.projects.get("svc")

        assert [r.commit_id for r in loaded.revisions] == ["c3", "c2"]
        assert [f.path for f in loaded.revisions[1].changed_files] == ["app.py", "broken.py"]

    def test_resave_replaces_project(self, repository: ProjectRepository, sample) -> None:
        project, contents = sample
        repository.save(project, contents)

        smaller = Project(descriptor=project.descriptor, revisions=project.revisions[:1])
        repository.save(smaller)

        assert repository.projects.get("svc").revisions == project.revisions[:1]
        assert repository.get_stats()["revisions"] == 1
        assert repository.get_stats()["contents"] == 0

    def test_failed_save_keeps_earlier_record(
        self, repository: ProjectRepository, sample, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Contents and project are replaced together or not at all."""
        project, contents = sample
        repository.save(project, contents)
        newer = content_for("svc", "c9", "app.py", "def run():\n    other()\n")

        def fail(conn, project):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(repository.projects, "insert", fail)
        with pytest.raises(sqlite3.OperationalError):
            repository.save(project, [newer])

        assert repository.contents.for_key(file_key("svc", "c2")) == contents
        assert repository.contents.for_key(file_key("svc", "c9")) == []
        monkeypatch.undo()
        assert repository.projects.get("svc") == project

    def test_summaries(self, repository: ProjectRepository, sample) -> None:
        project, contents = sample
        repository.save(project, contents)
        repository.save(
            Project(RepositoryDescriptor(name="api", uri="/repos/api"), revisions=())
        )

        summaries = repository.projects.summaries()

        assert [(s.name, s.revisions) for s in summaries] == [("api", 0), ("svc", 2)]
        assert summaries[1].processed_at

    def test_delete_project(self, repository: ProjectRepository, sample) -> None:
        project, contents = sample
        repository.save(project, contents)

        repository.delete_project("svc")

        stats = repository.get_stats()
        assert stats["projects"] == 0
        assert stats["changed_files"] == 0
        assert stats["contents"] == 0


class TestContentStorage:
    """Tests for parsed changed-file contents."""

    def test_get_by_key_and_path(self, repository: ProjectRepository, sample) -> None:
        _, contents = sample
        repository.contents.save(contents)

        stored = repository.contents.get(file_key("svc", "c2"), "app.py")

        assert stored == contents[0]

    def test_save_is_upsert(self, repository: ProjectRepository) -> None:
        first = content_for("svc", "c2", "app.py", "def a():\n    f()\n")
        second = content_for("svc", "c2", "app.py", "def a():\n    g()\n")

        repository.contents.save([first])
        repository.contents.save([second])

        assert repository.contents.for_key(file_key("svc", "c2")) == [second]

    def test_delete_for_repository_matches_prefix_exactly(
        self, repository: ProjectRepository
    ) -> None:
        repository.contents.save(
            [
                content_for("svc", "c1", "a.py", ""),
                content_for("svc_x", "c1", "a.py", ""),
                content_for("svcs", "c1", "a.py", ""),
            ]
        )

        deleted = repository.contents.delete_for_repository("svc")

        assert deleted == 1
        assert repository.contents.get(file_key("svc_x", "c1"), "a.py") is not None
        assert repository.contents.get(file_key("svcs", "c1"), "a.py") is not None

    def test_content_hash(self) -> None:
        assert compute_content_hash("{}") == compute_content_hash("{}")
        assert compute_content_hash("{}") != compute_content_hash("[]")
        assert len(compute_content_hash("{}")) == 64


class TestExport:
    """Tests for the JSON Lines dataset export."""

    def test_export_dataset(self, repository: ProjectRepository, sample, temp_dir: Path) -> None:
        project, contents = sample
        repository.save(project, contents)
        output = temp_dir / "out" / "dataset.jsonl"

        count = repository.export_dataset(output)

        assert count == 1
        (line,) = output.read_text().splitlines()
        record = json.loads(line)
        assert record["name"] == "svc"
        assert record["snapshot"] == ["app.py", "broken.py"]
        assert [r["commit_id"] for r in record["revisions"]] == ["c3", "c2"]
        app, broken = record["revisions"][1]["changed_files"]
        assert app["content"]["methods"][0]["name"] == "run"
        assert broken["content"] is None
        assert broken["fingerprint"] is None

    def test_export_empty_store(self, repository: ProjectRepository, temp_dir: Path) -> None:
        output = temp_dir / "dataset.jsonl"

        assert repository.export_dataset(output) == 0
        assert output.read_text() == ""
