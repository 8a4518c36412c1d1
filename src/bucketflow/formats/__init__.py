"""
Payload decoders (JSON / JSON Lines, CSV, text, binary, Avro fallback).
"""

from bucketflow.formats.base import Decoder, DecodeResult, FileFormat, FormatOptions, SkippedLine
from bucketflow.formats.binary import AvroFallbackDecoder, BinaryDecoder
from bucketflow.formats.csv_decoder import CsvDecoder, parse_csv_line
from bucketflow.formats.json_decoder import JsonDecoder
from bucketflow.formats.registry import DECODERS, build_decoder
from bucketflow.formats.text import TextDecoder

__all__ = [
    "Decoder",
    "DecodeResult",
    "FileFormat",
    "FormatOptions",
    "SkippedLine",
    "JsonDecoder",
    "CsvDecoder",
    "TextDecoder",
    "BinaryDecoder",
    "AvroFallbackDecoder",
    "DECODERS",
    "build_decoder",
    "parse_csv_line",
]
