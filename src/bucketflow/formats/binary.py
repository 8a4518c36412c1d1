"""
Binary passthrough decoder and the Avro fallback built on it.
"""

from __future__ import annotations

import base64

from bucketflow.formats.base import Decoder, DecodeResult


class BinaryDecoder(Decoder):
    """Wraps the whole payload as one ``{"data": <base64>, "size": <bytes>}`` record."""

    @property
    def format_name(self) -> str:
        return "binary"

    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        payload = bytes(data)
        return DecodeResult(records=[{"data": base64.b64encode(payload).decode("ascii"), "size": len(payload)}])


class AvroFallbackDecoder(BinaryDecoder):
    """
    Placeholder for Avro payloads.

    Container files are not parsed; each object is passed through exactly
    like the binary format. A warning is logged the first time it is used.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._warned = False

    @property
    def format_name(self) -> str:
        return "avro"

    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        if not self._warned:
            self.logger.warning("Avro decoding is not implemented, treating payloads as binary")
            self._warned = True
        return super().decode(data, key=key)
