"""Plain listing of a user's personal expenses and income."""

from __future__ import annotations

from typing import Sequence

from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.db.models import Transaction
from budgetroom.utils.money import format_currency


HISTORY_LIMIT = 15


def delete_command(transaction: Transaction) -> str:
    kind = "delincome" if transaction.is_income else "delexpense"
    return f"/{kind} {transaction.id}"


def format_history(transactions: Sequence[Transaction], currency: str = "USD", limit: int = HISTORY_LIMIT) -> str:
    if not transactions:
        return "No transactions yet. Add one with /expense or /income."
    lines = ["<b>Recent transactions</b>"]
    for transaction in transactions[:limit]:
        line = (
            f"{transaction.date.isoformat()} {hd.quote(transaction.category)}: "
            f"{format_currency(transaction.amount, exact=True, currency=currency)}"
        )
        if transaction.description:
            line += f" ({hd.quote(transaction.description)})"
        lines.append(f"• {line}  {delete_command(transaction)}")
    if len(transactions) > limit:
        lines.append(f"…and {len(transactions) - limit} more")
    return "\n".join(lines)
