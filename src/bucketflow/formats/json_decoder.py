"""
JSON and JSON Lines decoder.

Array mode parses the whole payload as one JSON document; line mode
parses each non-blank line independently and skips lines that fail.
"""

from __future__ import annotations

import json as json_module

from bucketflow.core.types import RawRecord, to_record_value
from bucketflow.exceptions import DecodeFailed
from bucketflow.formats.base import Decoder, DecodeResult, SkippedLine, iter_nonblank_lines

_PREVIEW_CHARS = 120


class JsonDecoder(Decoder):
    """Decoder for JSON documents and JSON Lines payloads."""

    @property
    def format_name(self) -> str:
        return "json"

    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        text = self._text(data)
        if self.options.json_array_mode:
            return DecodeResult(records=self._decode_document(text, key))
        return self._decode_lines(text, key)

    def _decode_document(self, text: str, key: str | None) -> list[RawRecord]:
        try:
            root = json_module.loads(text)
        except json_module.JSONDecodeError as e:
            raise DecodeFailed("json", str(e), key=key, cause=e) from e

        if isinstance(root, list):
            records = []
            for index, element in enumerate(root):
                if not isinstance(element, dict):
                    raise DecodeFailed(
                        "json", f"array element {index} is {type(element).__name__}, expected an object", key=key
                    )
                records.append(to_record_value(element))
            return records
        if isinstance(root, dict):
            return [to_record_value(root)]
        raise DecodeFailed("json", f"top-level value is {type(root).__name__}, expected an object or array", key=key)

    def _decode_lines(self, text: str, key: str | None) -> DecodeResult:
        result = DecodeResult()
        for number, line in iter_nonblank_lines(text):
            try:
                value = json_module.loads(line)
            except json_module.JSONDecodeError as e:
                self._skip(result, key, number, f"invalid JSON: {e.msg}", line)
                continue
            if not isinstance(value, dict):
                self._skip(result, key, number, f"expected an object, got {type(value).__name__}", line)
                continue
            result.records.append(to_record_value(value))
        return result

    def _skip(self, result: DecodeResult, key: str | None, number: int, reason: str, line: str) -> None:
        preview = line[:_PREVIEW_CHARS]
        result.skipped.append(SkippedLine(line_number=number, reason=reason, preview=preview))
        self.logger.warning(f"Skipping JSON line {number} in {key or '<payload>'}: {reason}")
