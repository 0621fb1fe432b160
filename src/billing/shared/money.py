"""Minor-currency-unit arithmetic and the cents <-> display conversions.

All invoice amounts are whole cents. ``Cents`` refuses floats at construction
so a fractional dollar amount can never slip into the ledger unnoticed; the
only place a decimal amount is accepted is ``dollars_to_cents``, at the
boundary where a person types an amount.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from protean.exceptions import ValidationError

CURRENCY = "USD"
CURRENCY_SYMBOL = "$"

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


class Cents(int):
    """A whole number of minor currency units."""

    def __new__(cls, value=0):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Cents must be built from an int, got {type(value).__name__}")
        return super().__new__(cls, value)

    def __add__(self, other):
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        return Cents(int(self) + int(other))

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        return Cents(int(self) - int(other))

    def __rsub__(self, other):
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        return Cents(int(other) - int(self))

    def __mul__(self, other):
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        return Cents(int(self) * int(other))

    __rmul__ = __mul__

    def __neg__(self):
        return Cents(-int(self))

    def __repr__(self):
        return f"Cents({int(self)})"

    @classmethod
    def sum(cls, values) -> "Cents":
        total = cls(0)
        for value in values:
            total = total + cls(value)
        return total


def as_cents(value, field: str = "amount") -> Cents:
    """Coerce ``value`` to ``Cents`` or raise a field-keyed ValidationError."""
    try:
        return Cents(value)
    except TypeError:
        raise ValidationError({field: [f"{field} must be a whole number of cents"]}) from None


def parse_rate(value, field: str = "tax_rate") -> Decimal:
    """Parse a fractional rate in ``[0, 1]`` without going through binary floats."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError({field: [f"{field} must be a number"]})
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValidationError({field: [f"{field} must be a number"]}) from None
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError({field: [f"{field} must be between 0 and 1"]})
    return rate


def round_half_up(value: Decimal) -> Cents:
    return Cents(int(value.quantize(_ONE, rounding=ROUND_HALF_UP)))


def compute_tax(subtotal, tax_rate) -> Cents:
    """Tax on ``subtotal`` rounded to the nearest cent, halves away from zero."""
    return round_half_up(Decimal(int(subtotal)) * parse_rate(tax_rate))


def format_currency(cents) -> str:
    """Render cents for display, e.g. ``123456`` -> ``"$1,234.56"``."""
    cents = int(as_cents(cents))
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), 100)
    return f"{sign}{CURRENCY_SYMBOL}{dollars:,}.{remainder:02d}"


def dollars_to_cents(amount) -> Cents:
    """Parse a human-entered dollar amount into cents.

    Accepts the strings ``format_currency`` produces (``"$1,234.56"``) as well
    as plain numbers. Sub-cent input is rounded half-up.
    """
    if isinstance(amount, bool):
        raise ValidationError({"amount": ["Amount must be a number"]})
    if isinstance(amount, Decimal):
        value = amount
    else:
        text = str(amount).strip().replace(",", "")
        negative = text.startswith("-")
        text = text.lstrip("-").strip()
        if text.startswith(CURRENCY_SYMBOL):
            text = text[len(CURRENCY_SYMBOL) :]
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationError({"amount": [f"'{amount}' is not a valid amount"]}) from None
        if negative:
            value = -value
    if not value.is_finite():
        raise ValidationError({"amount": [f"'{amount}' is not a valid amount"]})
    return round_half_up(value * _HUNDRED)
