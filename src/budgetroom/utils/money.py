from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


CENT = Decimal("0.01")

_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}


def as_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


# upper bound of the Numeric(12, 2) money columns
MAX_AMOUNT = Decimal(10) ** 10


def parse_amount(text: str) -> Decimal:
    cleaned = text.strip().replace(",", ".").lstrip("$€£")
    amount = as_decimal(cleaned)
    if not amount.is_finite():
        raise ValueError("Amount must be a positive number")
    if abs(amount) >= MAX_AMOUNT:
        raise ValueError("Amount is too large")
    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError("Amount must be a positive number") from exc
    if amount <= 0:
        raise ValueError("Amount must be a positive number")
    if amount >= MAX_AMOUNT:
        raise ValueError("Amount is too large")
    return amount


def _grouped(value: Decimal) -> str:
    return f"{value.quantize(CENT, rounding=ROUND_HALF_UP):,.2f}"


def format_currency(value: Decimal | float | int, *, exact: bool = False, currency: str = "USD") -> str:
    """Compact money label: ``$1.2M`` and ``$3.4k`` for large values, four
    decimals below one cent. ``exact`` always prints the full amount."""
    amount = as_decimal(value)
    symbol = _SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    if exact:
        return f"{sign}{symbol}{_grouped(abs(amount))}"
    if amount >= 1_000_000:
        return f"{symbol}{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{symbol}{amount / 1_000:.1f}k"
    if 0 < amount < CENT:
        return f"{symbol}{amount:.4f}"
    return f"{sign}{symbol}{_grouped(abs(amount))}"
