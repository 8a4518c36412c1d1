"""
bucketflow list - Show one listing page.

Lists one page of objects with every configured filter applied, without
fetching any content.
"""

from pathlib import Path

import typer
from rich.table import Table

from bucketflow.cli.common import ConfigOption, EnvOption, VerboseOption, console, load_pipeline
from bucketflow.connections.s3 import S3ObjectClient
from bucketflow.exceptions import BucketflowError

app = typer.Typer(name="list", help="List objects matched by the pipeline filters", invoke_without_command=True)


@app.callback()
def list_objects(
    ctx: typer.Context,
    config_path: Path = ConfigOption,
    env: str | None = EnvOption,
    verbose: bool = VerboseOption,
    token: str | None = typer.Option(None, "--token", "-t", help="Continuation token of the page to list"),
) -> None:
    """
    List one page of matching objects.
    """
    if ctx.invoked_subcommand is not None:
        return

    _, pipeline = load_pipeline(config_path, env, verbose)

    try:
        with S3ObjectClient(pipeline) as client:
            page = client.list(token)
    except BucketflowError as e:
        console.print(f"[red]Listing failed:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"s3://{pipeline.bucket}/{pipeline.prefix}")
    table.add_column("Key", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Last modified")
    table.add_column("ETag", style="dim")
    for obj in page.objects:
        table.add_row(obj.key, str(obj.size), obj.last_modified.isoformat(), obj.content_tag or "-")

    console.print(table)
    console.print(f"{len(page.objects)} of {page.listed_count} listed objects matched the filters")
    if page.next_token:
        console.print(f"[dim]Next page: --token {page.next_token}[/dim]")
