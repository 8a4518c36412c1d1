"""
Helpers shared by the CLI commands.
"""

from pathlib import Path

import typer
from rich.console import Console

from bucketflow.config.loader import Config, load_config
from bucketflow.config.pipeline import PipelineConfig
from bucketflow.exceptions import ConfigurationError
from bucketflow.utils.logging import setup_logging_from_config

console = Console()


def load_pipeline(config_path: Path, env: str | None, verbose: bool = False) -> tuple[Config, PipelineConfig]:
    """
    Load, resolve and validate the pipeline configuration.

    Prints the error and exits with status 1 when the configuration is invalid.
    """
    try:
        cfg = load_config(config_path, env=env)
        logging_section = dict(cfg.get("logging") or {})
        if verbose:
            logging_section["level"] = "DEBUG"
        base_dir = config_path if config_path.is_dir() else config_path.parent
        setup_logging_from_config({"logging": logging_section}, project_dir=base_dir)
        return cfg, PipelineConfig.from_config(cfg)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


ConfigOption = typer.Option(Path.cwd(), "--config", "-c", help="Config file or directory holding config.yaml")
EnvOption = typer.Option(None, "--env", "-e", help="Environment overlay (config.<env>.yaml)")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose output")
