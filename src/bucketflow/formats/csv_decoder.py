"""
CSV decoder.

Each non-blank line is parsed on its own, honouring double-quoted fields
and doubled quotes inside them. Rows may be shorter or longer than the
header; positions without a partner are left out of the record.
"""

from __future__ import annotations

import csv

from bucketflow.core.types import RawRecord
from bucketflow.exceptions import DecodeFailed
from bucketflow.formats.base import Decoder, DecodeResult, iter_nonblank_lines

# Object content is already bounded by what fit in memory; a single field has no size cap
csv.field_size_limit(2**31 - 1)


def parse_csv_line(line: str, delimiter: str = ",") -> list[str]:
    r'''
    Split one CSV line into trimmed field values.

    Leading blanks after a delimiter are skipped unless the delimiter is
    itself whitespace, so ``a  b`` with a space delimiter keeps its empty
    middle field.

    >>> parse_csv_line('a,"b,c",d')
    ['a', 'b,c', 'd']
    >>> parse_csv_line('"He said ""hi"""')
    ['He said "hi"']
    '''
    reader = csv.reader(
        [line],
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        skipinitialspace=not delimiter.isspace(),
    )
    fields = next(reader, [])
    return [value.strip() for value in fields]


class CsvDecoder(Decoder):
    """Decoder for delimiter-separated text with optional header row."""

    @property
    def format_name(self) -> str:
        return "csv"

    def decode(self, data: bytes, *, key: str | None = None) -> DecodeResult:
        delimiter = self.options.csv_delimiter
        headers: list[str] | None = None
        records: list[RawRecord] = []

        for number, line in iter_nonblank_lines(self._text(data)):
            try:
                values = parse_csv_line(line, delimiter)
            except csv.Error as e:
                raise DecodeFailed("csv", f"line {number}: {e}", key=key, cause=e) from e

            if self.options.csv_header and headers is None:
                headers = [name.strip() for name in values]
                continue

            if headers is not None:
                record: RawRecord = dict(zip(headers, values))
            else:
                record = {f"column_{index}": value for index, value in enumerate(values)}
            records.append(record)

        return DecodeResult(records=records)
