"""Category budgets and threshold alerts.

An alert fires once per threshold per budget per calendar month. Delivered
or dismissed alerts are stored in ``budget_alert_acks`` and filtered out
by :func:`detect_alerts`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Collection, Iterable, Mapping, Optional, Protocol, Sequence

from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.db.models import SharedExpense, Transaction
from budgetroom.utils.money import format_currency


ALERT_THRESHOLDS = (50, 90, 100)

THRESHOLD_MESSAGES = {
    50: "Half of your budget used",
    90: "Almost at your limit",
    100: "Budget limit reached",
}


class BudgetLike(Protocol):
    id: int
    category: str
    budget_limit: Decimal


@dataclass(slots=True, frozen=True)
class BudgetWithSpent:
    id: int
    category: str
    budget_limit: Decimal
    current_spent: Decimal

    @property
    def percent_used(self) -> Decimal:
        return percent_used(self.current_spent, self.budget_limit)


@dataclass(slots=True, frozen=True)
class BudgetAlert:
    budget_id: int
    category: str
    threshold: int
    percent_used: Decimal
    current_spent: Decimal
    budget_limit: Decimal
    period: str

    @property
    def alert_id(self) -> str:
        return f"{self.budget_id}_{self.threshold}_{self.period}"


def period_of(day: date) -> str:
    return day.strftime("%Y-%m")


def percent_used(spent: Decimal, limit: Decimal) -> Decimal:
    if limit <= 0:
        return Decimal("0")
    return spent / limit * 100


def monthly_spending_by_category(transactions: Iterable[Transaction], period: str) -> dict[str, Decimal]:
    by_category: dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.is_income or period_of(transaction.date) != period:
            continue
        by_category[transaction.category] = by_category.get(transaction.category, Decimal("0")) + abs(
            transaction.amount
        )
    return by_category


def room_spending_by_category(expenses: Iterable[SharedExpense], period: str) -> dict[str, Decimal]:
    by_category: dict[str, Decimal] = {}
    for expense in expenses:
        if expense.date is None or period_of(expense.date) != period:
            continue
        by_category[expense.category] = by_category.get(expense.category, Decimal("0")) + expense.amount
    return by_category


def budgets_with_spent(budgets: Sequence[BudgetLike], spent_by_category: Mapping[str, Decimal]) -> list[BudgetWithSpent]:
    return [
        BudgetWithSpent(
            id=budget.id,
            category=budget.category,
            budget_limit=budget.budget_limit,
            current_spent=spent_by_category.get(budget.category, Decimal("0")),
        )
        for budget in budgets
    ]


def detect_alerts(
    budgets: Iterable[BudgetWithSpent],
    acknowledged: Collection[tuple[int, int]],
    period: str,
) -> list[BudgetAlert]:
    """Alerts for every crossed threshold not yet in ``acknowledged``.

    ``acknowledged`` holds ``(budget_id, threshold)`` pairs for ``period``.
    """
    alerts: list[BudgetAlert] = []
    for budget in budgets:
        used = budget.percent_used
        for threshold in ALERT_THRESHOLDS:
            if used < threshold or (budget.id, threshold) in acknowledged:
                continue
            alerts.append(
                BudgetAlert(
                    budget_id=budget.id,
                    category=budget.category,
                    threshold=threshold,
                    percent_used=used,
                    current_spent=budget.current_spent,
                    budget_limit=budget.budget_limit,
                    period=period,
                )
            )

    alerts.sort(key=lambda alert: (-alert.threshold, alert.category))
    return alerts


def threshold_message(threshold: int) -> str:
    if threshold >= 100:
        return THRESHOLD_MESSAGES[100]
    if threshold >= 90:
        return THRESHOLD_MESSAGES[90]
    return THRESHOLD_MESSAGES[50]


def format_alert(alert: BudgetAlert, currency: str = "USD") -> str:
    return (
        f"⚠️ <b>{hd.quote(alert.category)}</b>: {threshold_message(alert.threshold)} "
        f"({alert.percent_used:.0f}%)\n"
        f"Spent {format_currency(alert.current_spent, exact=True, currency=currency)} "
        f"of {format_currency(alert.budget_limit, exact=True, currency=currency)}"
    )


def format_budget_lines(budgets: Sequence[BudgetWithSpent], currency: str = "USD") -> str:
    lines = []
    for budget in budgets:
        lines.append(
            f"• {hd.quote(budget.category)}: {format_currency(budget.current_spent, exact=True, currency=currency)} "
            f"of {format_currency(budget.budget_limit, exact=True, currency=currency)} "
            f"({budget.percent_used:.0f}%)"
        )
    return "\n".join(lines)


class BudgetRepository(Protocol):
    async def list_budgets(self, user_id: int) -> Sequence[BudgetLike]: ...

    async def list_transactions(self, user_id: int) -> list[Transaction]: ...

    async def list_alert_acks(self, user_id: int, period: str) -> set[tuple[int, int]]: ...


async def collect_budget_status(
    repo: BudgetRepository,
    user_id: int,
    period: str,
) -> tuple[list[BudgetWithSpent], list[BudgetAlert]]:
    budgets = await repo.list_budgets(user_id)
    transactions = await repo.list_transactions(user_id)
    acknowledged = await repo.list_alert_acks(user_id, period)
    rows = budgets_with_spent(budgets, monthly_spending_by_category(transactions, period))
    return rows, detect_alerts(rows, acknowledged, period)


class AlertAckRepository(Protocol):
    async def get_budget(self, user_id: int, budget_id: int) -> Optional[BudgetLike]: ...

    async def acknowledge_alerts(self, user_id: int, acks: Iterable[tuple[int, int]], period: str) -> None: ...


async def dismiss_alert(
    repo: AlertAckRepository,
    user_id: int,
    budget_id: int,
    threshold: int,
    period: str,
) -> BudgetLike:
    if threshold not in ALERT_THRESHOLDS:
        raise ValueError("Threshold must be one of 50, 90, 100")
    budget = await repo.get_budget(user_id, budget_id)
    if budget is None:
        raise ValueError("Budget not found")
    await repo.acknowledge_alerts(user_id, [(budget_id, threshold)], period)
    return budget
