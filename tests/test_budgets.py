from datetime import date
from decimal import Decimal

import pytest

from budgetroom.db.models import Budget, IncomeType, Transaction
from budgetroom.services.budgets import (
    BudgetWithSpent,
    budgets_with_spent,
    collect_budget_status,
    detect_alerts,
    dismiss_alert,
    format_alert,
    monthly_spending_by_category,
    period_of,
    threshold_message,
)


def tx(tx_id: int, day: date, category: str, amount: str, is_income: bool = False) -> Transaction:
    return Transaction(
        id=tx_id,
        date=day,
        category=category,
        description="",
        amount=Decimal(amount),
        is_income=is_income,
        income_type=IncomeType.ONE_TIME if is_income else None,
    )


def test_detect_alerts_order_and_acks():
    budgets = [
        BudgetWithSpent(id=1, category="Food", budget_limit=Decimal("100"), current_spent=Decimal("95")),
        BudgetWithSpent(id=2, category="Rent", budget_limit=Decimal("1000"), current_spent=Decimal("1000")),
        BudgetWithSpent(id=3, category="Fun", budget_limit=Decimal("100"), current_spent=Decimal("10")),
    ]

    alerts = detect_alerts(budgets, set(), "2024-05")
    assert [(a.category, a.threshold) for a in alerts] == [
        ("Rent", 100),
        ("Food", 90),
        ("Rent", 90),
        ("Food", 50),
        ("Rent", 50),
    ]
    assert alerts[0].alert_id == "2_100_2024-05"

    acked = detect_alerts(budgets, {(2, 100), (1, 50)}, "2024-05")
    assert [(a.category, a.threshold) for a in acked] == [("Food", 90), ("Rent", 90), ("Rent", 50)]


def test_zero_limit_never_alerts():
    budgets = [BudgetWithSpent(id=1, category="Food", budget_limit=Decimal("0"), current_spent=Decimal("50"))]
    assert detect_alerts(budgets, set(), "2024-05") == []


def test_threshold_message():
    assert threshold_message(100) == "Budget limit reached"
    assert threshold_message(90) == "Almost at your limit"
    assert threshold_message(50) == "Half of your budget used"


def test_monthly_spending_skips_income_and_other_months():
    transactions = [
        tx(1, date(2024, 5, 2), "Food", "-20"),
        tx(2, date(2024, 5, 20), "Food", "-5.50"),
        tx(3, date(2024, 4, 30), "Food", "-100"),
        tx(4, date(2024, 5, 1), "Salary", "3000", is_income=True),
    ]
    assert monthly_spending_by_category(transactions, "2024-05") == {"Food": Decimal("25.50")}


def test_budgets_with_spent_defaults_to_zero():
    budgets = [Budget(id=1, user_id=7, category="Travel", budget_limit=Decimal("300"))]
    rows = budgets_with_spent(budgets, {"Food": Decimal("10")})
    assert rows[0].current_spent == 0
    assert rows[0].percent_used == 0


def test_format_alert():
    alert = detect_alerts(
        [BudgetWithSpent(id=1, category="Food", budget_limit=Decimal("100"), current_spent=Decimal("120"))],
        set(),
        "2024-05",
    )[0]
    text = format_alert(alert)
    assert "Budget limit reached" in text
    assert "(120%)" in text
    assert "$100.00" in text


class StubBudgetRepo:
    def __init__(self) -> None:
        self.acks: set[tuple[int, int]] = set()

    async def list_budgets(self, user_id: int):
        return [Budget(id=1, user_id=user_id, category="Food", budget_limit=Decimal("100"))]

    async def list_transactions(self, user_id: int):
        return [
            tx(1, date(2024, 5, 3), "Food", "-60"),
            tx(2, date(2024, 4, 3), "Food", "-60"),
        ]

    async def list_alert_acks(self, user_id: int, period: str):
        return self.acks


@pytest.mark.asyncio
async def test_collect_budget_status():
    repo = StubBudgetRepo()
    period = period_of(date(2024, 5, 15))
    assert period == "2024-05"

    rows, alerts = await collect_budget_status(repo, 7, period)
    assert rows[0].current_spent == Decimal("60")
    assert [(a.budget_id, a.threshold) for a in alerts] == [(1, 50)]

    repo.acks = {(1, 50)}
    _, alerts = await collect_budget_status(repo, 7, period)
    assert alerts == []


class StubAckRepo:
    def __init__(self) -> None:
        self.budgets = {(7, 1): Budget(id=1, user_id=7, category="Food", budget_limit=Decimal("100"))}
        self.acked: list[tuple[int, list, str]] = []

    async def get_budget(self, user_id: int, budget_id: int):
        return self.budgets.get((user_id, budget_id))

    async def acknowledge_alerts(self, user_id: int, acks, period: str) -> None:
        self.acked.append((user_id, list(acks), period))


@pytest.mark.asyncio
async def test_dismiss_alert_records_ack():
    repo = StubAckRepo()
    budget = await dismiss_alert(repo, 7, 1, 90, "2024-05")
    assert budget.category == "Food"
    assert repo.acked == [(7, [(1, 90)], "2024-05")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "user_id, budget_id, threshold, message",
    [
        (7, 404, 50, "Budget not found"),
        (8, 1, 50, "Budget not found"),
        (7, 1, 75, "Threshold must be one of"),
    ],
)
async def test_dismiss_alert_rejects(user_id, budget_id, threshold, message):
    repo = StubAckRepo()
    with pytest.raises(ValueError, match=message):
        await dismiss_alert(repo, user_id, budget_id, threshold, "2024-05")
    assert repo.acked == []


def test_format_alert_escapes_category():
    alert = detect_alerts(
        [BudgetWithSpent(id=1, category="<Food>", budget_limit=Decimal("10"), current_spent=Decimal("10"))],
        set(),
        "2024-05",
    )[0]
    assert "<b>&lt;Food&gt;</b>" in format_alert(alert)
