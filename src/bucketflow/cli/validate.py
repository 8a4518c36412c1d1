"""
bucketflow validate - Check a pipeline configuration.

Loads and validates the configuration, then prints the effective
settings with credentials masked.
"""

from pathlib import Path

import typer
from rich.table import Table

from bucketflow.cli.common import ConfigOption, EnvOption, VerboseOption, console, load_pipeline

app = typer.Typer(name="validate", help="Validate a pipeline configuration", invoke_without_command=True)


@app.callback()
def validate(
    ctx: typer.Context,
    config_path: Path = ConfigOption,
    env: str | None = EnvOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Validate configuration and show effective settings.
    """
    if ctx.invoked_subcommand is not None:
        return

    _, pipeline = load_pipeline(config_path, env, verbose)

    table = Table(title=f"Pipeline: s3://{pipeline.bucket}/{pipeline.prefix} -> {pipeline.topic}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in pipeline.describe().items():
        table.add_row(name, "-" if value is None or value == "" else str(value))

    console.print(table)
    console.print("[green]Configuration is valid[/green]")
