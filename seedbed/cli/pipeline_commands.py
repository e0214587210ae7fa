"""CLI commands for running and querying pipelines."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from seedbed.core.exception import SeedbedError

console = Console()


def _build_pipeline(config_path: str | None):
    from seedbed.config import get_settings
    from seedbed.embeddings import create_embedding_provider
    from seedbed.pipeline import Pipeline
    from seedbed.pipeline_config import load_pipeline_config

    settings = get_settings()
    config = load_pipeline_config(config_path or settings.pipeline_config_path)
    return Pipeline(config, settings, create_embedding_provider(settings))


def _print_status(status: dict) -> None:
    table = Table(title="Embedding Stages")
    table.add_column("Stage", style="cyan")
    table.add_column("Embedded", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Removed", justify="right")
    table.add_column("Failed", justify="right", style="red")

    for stage in status["stages"]:
        table.add_row(
            stage["name"],
            str(stage["embedded"]),
            str(stage["skipped"]),
            str(stage["removed"]),
            str(stage["failed"]),
        )

    console.print(table)


async def _run(config_path: str | None) -> dict:
    from seedbed.loaders import OnceSchedule

    pipeline = _build_pipeline(config_path)
    await pipeline.start()
    try:
        if all(isinstance(r.schedule, OnceSchedule) for r in pipeline.loaders.values()):
            await pipeline.run_until_complete()
        else:
            console.print("[dim]Pipeline running, press Ctrl+C to stop[/dim]")
            await asyncio.Event().wait()
    finally:
        await pipeline.stop()
    return await pipeline.status()


def run_command(
    config: str = typer.Option(None, "--config", "-c", help="Pipeline YAML file"),
):
    """Run a pipeline until interrupted or until every loader finished."""
    try:
        status = asyncio.run(_run(config))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return
    except SeedbedError as e:
        console.print(f"[red]Pipeline failed: {e}[/red]")
        raise typer.Exit(1)

    _print_status(status)


async def _query(config_path: str | None, query_text: str, k: int | None):
    pipeline = _build_pipeline(config_path)
    await pipeline.start()
    try:
        await pipeline.wait_idle()
        return await pipeline.retrieve(query_text, k=k)
    finally:
        await pipeline.stop()


def query_command(
    query_text: str = typer.Argument(..., help="Free-text query"),
    config: str = typer.Option(None, "--config", "-c", help="Pipeline YAML file"),
    k: int = typer.Option(None, "--k", "-k", help="Number of results"),
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
):
    """Ingest the pipeline's content and retrieve the closest matches."""
    try:
        results = asyncio.run(_query(config, query_text, k))
    except SeedbedError as e:
        console.print(f"[red]Query failed: {e}[/red]")
        raise typer.Exit(1)

    if format == "json":
        console.print_json(
            json.dumps(
                [
                    {
                        "id": r.id,
                        "score": r.score,
                        "source_tag": r.source_tag,
                        "content": r.payload,
                    }
                    for r in results
                ],
                indent=2,
            )
        )
        return

    if not results:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=f"Results for: {query_text}")
    table.add_column("Score", justify="right", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Source", style="blue")
    table.add_column("Content", style="white")

    for r in results:
        content = r.payload.replace("\n", " ")
        if len(content) > 60:
            content = content[:60] + "..."
        table.add_row(f"{r.score:.4f}", r.id, r.source_tag, content)

    console.print(table)


def _read_snapshot(path: Path, source_tag: str):
    from seedbed.core import ContentItem

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read snapshot {path}: {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print(f"[red]Snapshot {path} must map ids to text[/red]")
        raise typer.Exit(1)

    return {
        str(item_id): ContentItem.from_payload(str(item_id), str(text), source_tag)
        for item_id, text in data.items()
    }


def diff_snapshots_command(
    previous: Path = typer.Argument(..., help="Previous snapshot (JSON object of id -> text)"),
    current: Path = typer.Argument(..., help="Current snapshot (JSON object of id -> text)"),
):
    """Show the change events between two content snapshots."""
    from seedbed.core import diff_snapshots, snapshot_fingerprints

    before = _read_snapshot(previous, "snapshot")
    after = _read_snapshot(current, "snapshot")
    events = diff_snapshots(snapshot_fingerprints(before), after)

    if not events:
        console.print("[green]No changes[/green]")
        return

    styles = {"added": "green", "updated": "yellow", "removed": "red"}
    table = Table(title="Changes")
    table.add_column("Kind")
    table.add_column("ID", style="cyan")

    for event in events:
        style = styles[event.kind]
        table.add_row(f"[{style}]{event.kind}[/{style}]", event.id)

    console.print(table)
