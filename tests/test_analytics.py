from datetime import date
from decimal import Decimal

from budgetroom.db.models import Transaction
from budgetroom.services.analytics import (
    date_range_for_period,
    expense_breakdown,
    period_heading,
    savings_rate,
    spending_trend,
    top_spending,
    totals_between,
)

TODAY = date(2024, 5, 15)


def tx(tx_id: int, day: date, category: str, amount: str, is_income: bool = False) -> Transaction:
    return Transaction(
        id=tx_id, date=day, category=category, description="", amount=Decimal(amount), is_income=is_income
    )


TRANSACTIONS = [
    tx(1, date(2024, 5, 14), "Food", "-30"),
    tx(2, date(2024, 5, 14), "Rent", "-70"),
    tx(3, date(2024, 3, 1), "Food", "-100"),
    tx(4, date(2024, 5, 1), "Salary", "500", is_income=True),
]


def test_date_range_for_period():
    assert date_range_for_period("week", TODAY) == (date(2024, 5, 9), TODAY)
    assert date_range_for_period("month", TODAY) == (date(2024, 4, 16), TODAY)
    assert date_range_for_period("year", TODAY) == (date(2024, 1, 1), TODAY)


def test_expense_breakdown():
    items = expense_breakdown(TRANSACTIONS, "month", TODAY)
    assert [(i.name, i.value, i.percent) for i in items] == [
        ("Rent", Decimal("70"), Decimal("70.0")),
        ("Food", Decimal("30"), Decimal("30.0")),
    ]

    year = expense_breakdown(TRANSACTIONS, "year", TODAY)
    assert year[0].name == "Food"
    assert year[0].value == Decimal("130")


def test_expense_breakdown_empty():
    assert expense_breakdown(TRANSACTIONS[3:], "month", TODAY) == []


def test_top_spending_limit():
    assert top_spending(TRANSACTIONS, "year", TODAY, limit=1) == [("Food", Decimal("130"))]


def test_spending_trend_week():
    points = spending_trend(TRANSACTIONS, "week", TODAY)
    assert len(points) == 7
    assert points[-1].date == TODAY
    assert points[-2].spent == Decimal("100")
    assert points[-2].label == "May 14"


def test_spending_trend_year_buckets():
    points = spending_trend(TRANSACTIONS, "year", TODAY)
    assert len(points) == 52
    assert points[-1].date == date(2024, 5, 9)
    assert points[-1].spent == Decimal("100")
    assert points[0].date < points[-1].date


def test_savings_rate():
    assert savings_rate(Decimal("1000"), Decimal("250")) == Decimal("75.0")
    assert savings_rate(Decimal("3"), Decimal("1")) == Decimal("66.7")
    assert savings_rate(Decimal("0"), Decimal("10")) is None


def test_totals_between():
    income, spent = totals_between(TRANSACTIONS, date(2024, 5, 1), TODAY)
    assert income == Decimal("500")
    assert spent == Decimal("100")


def test_period_heading():
    assert period_heading("week") == "the last week"
    assert period_heading("month") == "the last month"
    assert period_heading("year") == "this year"
