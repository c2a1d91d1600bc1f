import csv
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, TextIO, Union

import structlog
from pydantic import ValidationError

from errors import InvalidHeaderError, InvalidRecordTypeError, MalformedRecordError, MissingAmountError
from models import TransactionRecord, TransactionType

logger = structlog.get_logger()

EXPECTED_HEADER = ["type", "client", "tx", "amount"]


class TransactionReader:
    """Lazy, forward-only iterator of transaction records from delimited text.

    The header is checked when the reader is built. Any malformed row raises a
    LedgerError from iteration and nothing after it is read.
    """

    def __init__(self, stream: TextIO, delimiter: str = ","):
        self._rows = csv.reader(stream, delimiter=delimiter)
        self._cells = self._read_cells()
        self.header = self._read_header()

    def _read_cells(self) -> Iterator[List[str]]:
        """Trimmed cells of each non-blank row."""
        try:
            for row in self._rows:
                cells = [cell.strip() for cell in row]
                if any(cells):
                    yield cells
        except csv.Error as e:
            raise MalformedRecordError(str(e), line=self._rows.line_num) from e

    def _read_header(self) -> List[str]:
        cells = next(self._cells, None)
        if cells is None:
            raise InvalidHeaderError([])
        if [cell.lower() for cell in cells] != EXPECTED_HEADER:
            raise InvalidHeaderError(cells)
        return cells

    def __iter__(self) -> Iterator[TransactionRecord]:
        for cells in self._cells:
            yield self._parse_row(cells, self._rows.line_num)

    def _parse_row(self, cells: List[str], line: int) -> TransactionRecord:
        if len(cells) not in (3, 4):
            raise MalformedRecordError(
                f"Expected 3 or 4 fields, found {len(cells)}", line=line
            )

        token = cells[0]
        try:
            transaction_type = TransactionType(token)
        except ValueError:
            raise InvalidRecordTypeError(cells[0], line=line) from None

        amount = cells[3] if len(cells) == 4 and cells[3] else None
        if transaction_type.requires_amount and amount is None:
            raise MissingAmountError(transaction_type.value, line=line)

        try:
            return TransactionRecord(
                type=transaction_type,
                client=cells[1],
                tx=cells[2],
                amount=amount,
            )
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            raise MalformedRecordError(errors, line=line) from e


@contextmanager
def open_transactions(
    path: Union[str, Path],
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> Iterator[TransactionReader]:
    """Open a CSV file and yield a reader over its records."""
    logger.info("Opening transaction file", path=str(path))
    with open(path, newline="", encoding=encoding) as stream:
        yield TransactionReader(stream, delimiter=delimiter)


def read_transactions(
    path: Union[str, Path],
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> Iterator[TransactionRecord]:
    """Yield every record of a CSV file in file order."""
    with open_transactions(path, delimiter=delimiter, encoding=encoding) as reader:
        yield from reader
