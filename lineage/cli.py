"""CLI entry point for Lineage."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from lineage.connectors import get_connector
from lineage.core.exceptions import ProjectNotFoundError
from lineage.core.metadata import MetadataSource
from lineage.core.models import Project, RepositoryDescriptor, file_key
from lineage.core.processor import Processor, RepositoryResult
from lineage.core.storage import ProjectRepository, get_default_db_path
from lineage.languages import ParsedUnit
from lineage.logging import configure_logging

app = typer.Typer(
    name="lineage",
    help="Mine source-file evolution and method invocations from Git histories.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

DbOption = Annotated[
    Path | None,
    typer.Option("--db", envvar="LINEAGE_DB", help="SQLite store (default: .lineage/lineage.db)"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


def get_store(db: Path | None) -> ProjectRepository:
    """Open the store at ``db`` or at the default location under the working directory."""
    return ProjectRepository(db or get_default_db_path(Path(".").resolve()))


def project_to_dict(project: Project) -> dict[str, object]:
    """Convert a Project to a JSON-serializable dict."""
    return {
        "name": project.name,
        "uri": project.descriptor.uri,
        "parser": project.descriptor.parser,
        "snapshot": list(project.snapshot),
        "revisions": [
            {
                "commit_id": revision.commit_id,
                "changed_files": [
                    {
                        "path": f.path,
                        "change_type": f.change_type.value,
                        "fingerprint": f.fingerprint,
                    }
                    for f in revision.changed_files
                ],
            }
            for revision in project.revisions
        ],
    }


@app.command()
def process(
    metadata: Annotated[Path, typer.Argument(help="Repository metadata (.json or .jsonl)")],
    repo: Annotated[
        list[str] | None,
        typer.Option("--repo", "-r", help="Allowed repositories; metadata must match them"),
    ] = None,
    db: DbOption = None,
    workers: Annotated[
        int,
        typer.Option("--workers", "-w", envvar="LINEAGE_WORKERS", min=1, help="Parallel workers"),
    ] = 1,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", envvar="LINEAGE_TIMEOUT", help="Seconds to wait per repository"),
    ] = None,
    workdir: Annotated[
        Path | None,
        typer.Option("--workdir", envvar="LINEAGE_WORKDIR", help="Clone directory for remote URLs"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    log_file: Annotated[Path | None, typer.Option("--log-file", help="Also log to a file")] = None,
    output_json: JsonOption = False,
) -> None:
    """Walk the history of every repository in a metadata file and store the projects."""
    configure_logging(verbose=verbose, log_file=log_file, console=err_console)
    source = MetadataSource(metadata, repositories=repo)

    with get_store(db) as store:
        processor = Processor(
            store,
            connector_factory=lambda: get_connector("git", workdir=workdir, clone_timeout=timeout),
            workers=workers,
            timeout=timeout,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=err_console,
            disable=output_json,
        ) as progress:
            task = progress.add_task(f"Processing [cyan]{metadata.name}[/]", total=None)

            def on_progress(descriptor: RepositoryDescriptor, result: RepositoryResult) -> None:
                progress.advance(task)
                status = "[red]skipped[/]" if result.project is None else "[green]done[/]"
                progress.update(task, description=f"[cyan]{descriptor.name}[/] {status}")

            stats = processor.process(source, on_progress=on_progress)

    if output_json:
        print(
            json.dumps(
                {
                    "repositories": stats.repositories,
                    "projects": stats.projects,
                    "revisions": stats.revisions,
                    "changed_files": stats.changed_files,
                    "skipped_repositories": stats.skipped_repositories,
                    "aborted": stats.aborted,
                    "errors": stats.errors,
                }
            )
        )
    else:
        console.print("[green]Done![/green]" if not stats.aborted else "[red]Aborted[/red]")
        console.print(f"  Repositories: {stats.repositories}")
        console.print(f"  Projects stored: {stats.projects}")
        console.print(f"  Revisions: {stats.revisions}")
        console.print(f"  Changed files: {stats.changed_files}")

        if stats.skipped_repositories:
            console.print(f"  [dim]Skipped repositories: {stats.skipped_repositories}[/]")
        if stats.errors:
            console.print(f"  [red]Errors: {len(stats.errors)}[/red]")
            for error in stats.errors:
                console.print(f"    {error}", markup=False)

    if stats.aborted:
        raise typer.Exit(code=1)


@app.command()
def stats(db: DbOption = None, output_json: JsonOption = False) -> None:
    """Show store statistics."""
    with get_store(db) as store:
        result = store.get_stats()

    if output_json:
        print(json.dumps(result, default=str))
    else:
        console.print(f"Projects: {result['projects']}")
        console.print(f"Revisions: {result['revisions']}")
        console.print(f"Changed files: {result['changed_files']}")
        console.print(f"Parsed contents: {result['contents']}")
        if result["last_processed"]:
            console.print(f"Last processed: {result['last_processed']}")


@app.command()
def projects(db: DbOption = None, output_json: JsonOption = False) -> None:
    """List stored projects."""
    with get_store(db) as store:
        summaries = store.projects.summaries()

    if output_json:
        print(
            json.dumps(
                [
                    {
                        "name": s.name,
                        "uri": s.uri,
                        "parser": s.parser,
                        "revisions": s.revisions,
                        "processed_at": s.processed_at,
                    }
                    for s in summaries
                ]
            )
        )
        return

    if not summaries:
        console.print("No projects stored yet. Run [cyan]lineage process[/] first.")
        return

    table = Table("Name", "Repository", "Parser", "Revisions", "Processed")
    for s in summaries:
        table.add_row(escape(s.name), escape(s.uri), s.parser, str(s.revisions), s.processed_at)
    console.print(table)


@app.command()
def revisions(
    name: Annotated[str, typer.Argument(help="Project name")],
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show the revisions of a project, newest first."""
    with get_store(db) as store:
        try:
            project = store.projects.get(name)
        except ProjectNotFoundError:
            console.print(f"No project named '[cyan]{escape(name)}[/cyan]'")
            raise typer.Exit(code=1) from None

    if output_json:
        print(json.dumps(project_to_dict(project)))
        return

    console.print(f"[bold cyan]{escape(project.name)}[/] [dim]{escape(project.descriptor.uri)}[/]")
    console.print(f"  [dim]{len(project.snapshot)} tracked files[/]")
    if not project.revisions:
        console.print("  [dim]No revisions[/]")
    for revision in project.revisions:
        console.print(f"\n[yellow]{revision.commit_id}[/]")
        for f in revision.changed_files:
            marker = "" if f.fingerprint else " [dim](not parsed)[/]"
            console.print(f"  {f.change_type.value:<12} {escape(f.path)}{marker}")


@app.command()
def calls(
    name: Annotated[str, typer.Argument(help="Project name")],
    commit: Annotated[str, typer.Argument(help="Commit id")],
    path: Annotated[str, typer.Argument(help="File path within the repository")],
    db: DbOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show the method invocations of a changed file at a commit."""
    with get_store(db) as store:
        content = store.contents.get(file_key(name, commit), path)

    if content is None:
        console.print(f"No parsed content for [cyan]{escape(path)}[/] at [yellow]{commit}[/]")
        raise typer.Exit(code=1)

    if output_json:
        print(content.payload)
        return

    unit = ParsedUnit.from_json(content.payload)
    for method in unit.methods:
        console.print(f"[bold cyan]{escape(method.qualified_name)}[/] [dim](line {method.line})[/]")
        if not method.invocations:
            console.print("  [dim]No calls[/]")
        for call in method.invocations:
            console.print(f"  {escape(call.signature)} [dim](line {call.line})[/]")


@app.command()
def export(
    output: Annotated[Path, typer.Argument(help="JSON Lines file to write")],
    db: DbOption = None,
) -> None:
    """Export every stored project, with parsed contents, as a JSON Lines dataset."""
    with get_store(db) as store:
        count = store.export_dataset(output)
    console.print(f"[green]Exported {count} projects to {output}[/green]")


if __name__ == "__main__":
    app()
