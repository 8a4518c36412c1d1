"""
Base decoder class and shared decoding types.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from bucketflow.core.types import RawRecord
from bucketflow.utils.logging import get_logger


class FileFormat(str, Enum):
    """Supported object payload formats."""

    JSON = "json"
    CSV = "csv"
    TEXT = "text"
    BINARY = "binary"
    AVRO = "avro"  # decoded as binary until a real Avro reader exists


@dataclass(frozen=True)
class FormatOptions:
    """Format sub-options that apply to a decoder."""

    csv_delimiter: str = ","
    csv_header: bool = True
    json_array_mode: bool = False
    encoding: str = "utf-8"


@dataclass(frozen=True)
class SkippedLine:
    """A line dropped by a line-tolerant decoder."""

    line_number: int
    reason: str
    preview: str = ""


@dataclass
class DecodeResult:
    """
    Outcome of decoding one object.

    ``records`` are the successfully decoded records in payload order;
    ``skipped`` lists lines that were dropped without failing the object.
    """

    records: list[RawRecord] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


class Decoder(ABC):
    """
    Base class for payload decoders.

    Decoders are stateless with respect to their input: decoding the same
    bytes twice yields the same result and never modifies the bytes.
    """

    def __init__(self, options: FormatOptions | None = None, logger: logging.Logger | None = None):
        self.options = options or FormatOptions()
        self.logger = logger or get_logger(f"bucketflow.formats.{self.format_name}")

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Return the format name (e.g. 'json', 'csv')."""
        ...

    @abstractmethod
    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        """
        Decode an object payload into records.

        Args:
            data: Raw object content
            key: Object key, used for log and error messages

        Returns:
            DecodeResult with records and skipped-line diagnostics

        Raises:
            DecodeFailed: If the payload as a whole cannot be decoded
        """
        ...

    def _text(self, data: bytes) -> str:
        return bytes(data).decode(self.options.encoding, errors="replace")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(format='{self.format_name}')"


def iter_nonblank_lines(text: str):
    """Yield ``(line_number, trimmed_line)`` for every non-blank line (1-based)."""
    for number, line in enumerate(text.split("\n"), start=1):
        stripped = line.strip()
        if stripped:
            yield number, stripped
