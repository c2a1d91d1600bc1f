import csv
from typing import Iterable, TextIO

from models import AccountBalance

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


def write_balances(balances: Iterable[AccountBalance], stream: TextIO) -> int:
    """Write balances as CSV rows. Returns the number of rows written."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)

    count = 0
    for balance in balances:
        writer.writerow([
            balance.client,
            balance.available,
            balance.held,
            balance.total,
            "true" if balance.locked else "false",
        ])
        count += 1
    return count
