"""
Per-pipeline context.

Each pipeline instance gets its own logger, decoder, offset tracker,
assembler and stop event; nothing is shared between instances.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.core.assembler import RecordAssembler
from bucketflow.core.offsets import OffsetTracker
from bucketflow.formats.base import Decoder, FormatOptions
from bucketflow.formats.registry import build_decoder
from bucketflow.utils.logging import get_logger


@dataclass
class PipelineContext:
    """Collaborators owned by one pipeline instance."""

    config: PipelineConfig
    logger: logging.Logger
    decoder: Decoder
    tracker: OffsetTracker
    assembler: RecordAssembler
    stop_event: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def create(cls, config: PipelineConfig, *, stop_event: threading.Event | None = None) -> PipelineContext:
        logger = get_logger(f"bucketflow.pipeline.{config.bucket}.task{config.task_id}")
        options = FormatOptions(
            csv_delimiter=config.csv_delimiter,
            csv_header=config.csv_header,
            json_array_mode=config.json_array_mode,
            encoding=config.encoding,
        )
        tracker = OffsetTracker(config.partition_namespace)
        return cls(
            config=config,
            logger=logger,
            decoder=build_decoder(config.file_format, options, logger=logger.getChild(config.file_format.value)),
            tracker=tracker,
            assembler=RecordAssembler(config, tracker, logger),
            stop_event=stop_event or threading.Event(),
        )

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()
