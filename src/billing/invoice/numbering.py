"""Human-readable invoice numbers: ``INV-<year>-<NNNN>``, sequential per year."""

import re

from protean.fields import Integer, String

from billing.domain import billing

INVOICE_NUMBER_PREFIX = "INV"

_NUMBER_PATTERN = re.compile(rf"^{INVOICE_NUMBER_PREFIX}-(\d{{4}})-(\d+)$")


def format_invoice_number(year: int, sequence: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}-{year}-{sequence:04d}"


def parse_invoice_number(invoice_number: str) -> tuple[int, int] | None:
    """Return ``(year, sequence)`` or None for numbers in another format."""
    match = _NUMBER_PATTERN.match(invoice_number or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def highest_sequence(existing_numbers, year: int) -> int:
    """The largest sequence already issued in ``year``, or 0."""
    highest = 0
    for number in existing_numbers:
        parsed = parse_invoice_number(number)
        if parsed and parsed[0] == year:
            highest = max(highest, parsed[1])
    return highest


@billing.aggregate
class InvoiceSequence:
    """Per-year counter backing invoice numbers."""

    year_key = String(identifier=True, max_length=4)
    last_number = Integer(default=0, min_value=0)

    @classmethod
    def start(cls, year: int, last_number: int = 0):
        return cls(year_key=str(year), last_number=last_number)

    def allocate(self) -> str:
        self.last_number = (self.last_number or 0) + 1
        return format_invoice_number(int(self.year_key), self.last_number)
