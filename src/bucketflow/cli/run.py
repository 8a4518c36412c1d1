"""
bucketflow run - Run the pipeline.

Polls the bucket, delivers records to the chosen sink and commits
offsets after each delivered batch.
"""

import asyncio
import contextlib
import signal
from enum import Enum
from pathlib import Path

import typer
from rich.table import Table

from bucketflow.cli.common import ConfigOption, EnvOption, VerboseOption, console, load_pipeline
from bucketflow.config.pipeline import PipelineConfig
from bucketflow.exceptions import BucketflowError
from bucketflow.runtime import InMemoryOffsetStore, JsonFileOffsetStore, PipelineRunner
from bucketflow.streaming import InMemoryAdapter, KafkaAdapter, MessageAdapter
from bucketflow.utils.logging import get_logger

logger = get_logger("bucketflow.cli.run")

app = typer.Typer(name="run", help="Run the ingestion pipeline", invoke_without_command=True)


class SinkType(str, Enum):
    MEMORY = "memory"
    KAFKA = "kafka"


@app.callback()
def run(
    ctx: typer.Context,
    config_path: Path = ConfigOption,
    env: str | None = EnvOption,
    verbose: bool = VerboseOption,
    once: bool = typer.Option(False, "--once", help="Run a single poll cycle and exit"),
    sink: SinkType = typer.Option(SinkType.MEMORY, "--sink", "-s", help="Where records are delivered"),
    bootstrap_servers: str = typer.Option(
        "localhost:9092", "--bootstrap-servers", envvar="KAFKA_BOOTSTRAP_SERVERS", help="Kafka brokers"
    ),
    offsets: Path | None = typer.Option(None, "--offsets", help="JSON file for committed offsets"),
    max_tasks: int = typer.Option(1, "--max-tasks", min=1, help="Upper bound on parallel tasks"),
) -> None:
    """
    Run the pipeline until interrupted (or once with --once).
    """
    if ctx.invoked_subcommand is not None:
        return

    _, pipeline = load_pipeline(config_path, env, verbose)

    target: MessageAdapter
    if sink is SinkType.KAFKA:
        target = KafkaAdapter(bootstrap_servers=bootstrap_servers)
    else:
        target = InMemoryAdapter()

    try:
        store = JsonFileOffsetStore(offsets) if offsets else InMemoryOffsetStore()
    except BucketflowError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    runner = PipelineRunner(pipeline, sink=target, offset_store=store, max_tasks=max_tasks)
    try:
        asyncio.run(_run(runner, max_polls=1 if once else None))
    except BucketflowError as e:
        console.print(f"[red]Pipeline failed:[/red] {e}")
        raise typer.Exit(1) from e

    _print_summary(runner, pipeline)


async def _run(runner: PipelineRunner, max_polls: int | None) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, runner.request_stop)

    async with runner:
        await runner.run_forever(max_polls=max_polls)


def _print_summary(runner: PipelineRunner, pipeline: PipelineConfig) -> None:
    stats = runner.stats
    table = Table(title="Run summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Polls", str(stats.polls))
    table.add_row("Records delivered", str(stats.records))
    table.add_row("Dead letters", str(stats.dead_letters))
    table.add_row("Offsets committed", str(stats.committed))
    if isinstance(runner.sink, InMemoryAdapter):
        for topic in runner.sink.topics:
            table.add_row(f"Topic {topic}", str(len(runner.sink.get_topic_messages(topic))))
    console.print(table)
    logger.debug(f"Run finished for bucket {pipeline.bucket}")
