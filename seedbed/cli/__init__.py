"""Seedbed CLI application."""

import logging
import sys

import typer

from seedbed.cli.pipeline_commands import diff_snapshots_command, query_command, run_command

app = typer.Typer(
    name="seedbed",
    help="Seedbed - ingestion and retrieval pipeline CLI",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


# Register pipeline commands
app.command("run")(run_command)
app.command("query")(query_command)
app.command("diff")(diff_snapshots_command)


@app.command()
def version():
    """Show version information."""
    from seedbed.config import get_settings

    settings = get_settings()
    typer.echo(f"Seedbed v{settings.app_version}")


@app.command()
def info():
    """Show application information."""
    from seedbed.config import get_settings

    settings = get_settings()

    typer.echo(f"Application: Seedbed v{settings.app_version}")
    typer.echo(f"Environment: {settings.env}")
    typer.echo(f"Embedding Provider: {settings.embedding_provider}")
    typer.echo(f"Pipeline Config: {settings.pipeline_config_path}")


if __name__ == "__main__":
    app()
