"""
Main CLI entry point.
"""

import typer

from bucketflow import __version__
from bucketflow.cli import listing, run, validate


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"bucketflow version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="bucketflow",
    help="Bucketflow - Stream objects from S3 buckets into topics",
    add_completion=True,
)

# Register subcommands
app.add_typer(validate.app, name="validate")
app.add_typer(listing.app, name="list")
app.add_typer(run.app, name="run")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Bucketflow - Stream objects from S3 buckets into topics.

    Run 'bucketflow <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
