"""
Plain text decoder: one record per non-blank line.
"""

from __future__ import annotations

from bucketflow.formats.base import Decoder, DecodeResult, iter_nonblank_lines

TEXT_FIELD = "line"


class TextDecoder(Decoder):
    """Decoder producing ``{"line": <trimmed text>}`` records."""

    @property
    def format_name(self) -> str:
        return "text"

    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        return DecodeResult(records=[{TEXT_FIELD: line} for _, line in iter_nonblank_lines(self._text(data))])
