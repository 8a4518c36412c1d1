"""
Decoder registry.

Maps each FileFormat to its decoder class; the decoder for a pipeline is
built once when the pipeline context is created.
"""

from __future__ import annotations

import logging

from bucketflow.formats.base import Decoder, FileFormat, FormatOptions
from bucketflow.formats.binary import AvroFallbackDecoder, BinaryDecoder
from bucketflow.formats.csv_decoder import CsvDecoder
from bucketflow.formats.json_decoder import JsonDecoder
from bucketflow.formats.text import TextDecoder

DECODERS: dict[FileFormat, type[Decoder]] = {
    FileFormat.JSON: JsonDecoder,
    FileFormat.CSV: CsvDecoder,
    FileFormat.TEXT: TextDecoder,
    FileFormat.BINARY: BinaryDecoder,
    FileFormat.AVRO: AvroFallbackDecoder,
}


def build_decoder(
    file_format: FileFormat | str,
    options: FormatOptions | None = None,
    *,
    logger: logging.Logger | None = None,
) -> Decoder:
    """
    Build the decoder for a format.

    Raises:
        ValueError: If the format is not supported
    """
    try:
        fmt = FileFormat(file_format)
    except ValueError:
        raise ValueError(
            f"Unsupported file format '{file_format}'. Available: {[f.value for f in FileFormat]}"
        ) from None
    return DECODERS[fmt](options, logger)
