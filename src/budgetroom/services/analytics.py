from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal, Optional, Sequence

from budgetroom.db.models import Transaction


Period = Literal["week", "month", "year"]
PERIODS: tuple[str, ...] = ("week", "month", "year")


@dataclass(slots=True, frozen=True)
class BreakdownItem:
    name: str
    value: Decimal
    percent: Decimal


@dataclass(slots=True, frozen=True)
class TrendPoint:
    date: date
    spent: Decimal
    label: str


def date_range_for_period(period: Period, today: date) -> tuple[date, date]:
    if period == "week":
        return today - timedelta(days=6), today
    if period == "month":
        return today - timedelta(days=29), today
    return today.replace(month=1, day=1), today


def _expenses_between(transactions: Iterable[Transaction], start: date, end: date) -> list[Transaction]:
    return [t for t in transactions if not t.is_income and start <= t.date <= end]


def _by_category(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for t in transactions:
        totals[t.category] = totals.get(t.category, Decimal("0")) + abs(t.amount)
    return totals


def expense_breakdown(transactions: Sequence[Transaction], period: Period, today: date) -> list[BreakdownItem]:
    start, end = date_range_for_period(period, today)
    totals = _by_category(_expenses_between(transactions, start, end))
    total = sum(totals.values(), Decimal("0"))
    if total == 0:
        return []
    items = [
        BreakdownItem(
            name=name,
            value=value,
            percent=(value / total * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
        )
        for name, value in totals.items()
    ]
    return sorted(items, key=lambda item: item.value, reverse=True)


def top_spending(
    transactions: Sequence[Transaction],
    period: Period,
    today: date,
    limit: int = 10,
) -> list[tuple[str, Decimal]]:
    start, end = date_range_for_period(period, today)
    totals = _by_category(_expenses_between(transactions, start, end))
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]


def _spent_between(transactions: Sequence[Transaction], start: date, end: date) -> Decimal:
    return sum((abs(t.amount) for t in _expenses_between(transactions, start, end)), Decimal("0"))


def spending_trend(transactions: Sequence[Transaction], period: Period, today: date) -> list[TrendPoint]:
    """Daily points for ``week`` and ``month``, 52 weekly buckets for ``year``."""
    if period in ("week", "month"):
        days = 7 if period == "week" else 30
        points = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            points.append(TrendPoint(date=day, spent=_spent_between(transactions, day, day), label=_label(day)))
        return points

    points = []
    week_end = today
    for _ in range(52):
        week_start = week_end - timedelta(days=6)
        points.append(
            TrendPoint(
                date=week_start,
                spent=_spent_between(transactions, week_start, week_end),
                label=_label(week_start),
            )
        )
        week_end = week_start - timedelta(days=1)
    points.reverse()
    return points


def _label(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}"


def savings_rate(income: Decimal, expenses: Decimal) -> Optional[Decimal]:
    if income is None or income <= 0:
        return None
    rate = (income - expenses) / income * 100
    return rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def totals_between(transactions: Sequence[Transaction], start: date, end: date) -> tuple[Decimal, Decimal]:
    income = sum((t.amount for t in transactions if t.is_income and start <= t.date <= end), Decimal("0"))
    return income, _spent_between(transactions, start, end)


def period_heading(period: Period) -> str:
    # "year" runs from Jan 1, not over the last 365 days
    return "this year" if period == "year" else f"the last {period}"
