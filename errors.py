from typing import Optional, Sequence


class LedgerError(Exception):
    """Base class for errors that abort processing of the whole stream."""

    error_code = "LEDGER_ERROR"

    def __init__(self, detail: str, line: Optional[int] = None):
        self.detail = detail
        self.line = line
        message = f"line {line}: {detail}" if line is not None else detail
        super().__init__(message)


class InvalidHeaderError(LedgerError):
    error_code = "INVALID_HEADER"

    def __init__(self, header: Sequence[str]):
        self.header = list(header)
        super().__init__(f"Incorrect csv header: {self.header!r}", line=1)


class InvalidRecordTypeError(LedgerError):
    error_code = "INVALID_RECORD_TYPE"

    def __init__(self, token: str, line: Optional[int] = None):
        self.token = token
        super().__init__(f"Invalid record type: {token!r}", line=line)


class MissingAmountError(LedgerError):
    error_code = "MISSING_AMOUNT"

    def __init__(self, transaction_type: str, line: Optional[int] = None):
        self.transaction_type = transaction_type
        super().__init__(f"{transaction_type} record is missing an amount", line=line)


class MalformedRecordError(LedgerError):
    error_code = "MALFORMED_RECORD"


class AmountOverflowError(LedgerError):
    error_code = "AMOUNT_OVERFLOW"
