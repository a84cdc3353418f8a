from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.config import get_settings
from budgetroom.db.repo import get_global_repository
from budgetroom.logging import bind_context, get_logger
from budgetroom.services.analytics import (
    PERIODS,
    date_range_for_period,
    expense_breakdown,
    period_heading,
    savings_rate,
    spending_trend,
    top_spending,
    totals_between,
)
from budgetroom.services.budgets import (
    collect_budget_status,
    dismiss_alert,
    format_alert,
    format_budget_lines,
    period_of,
)
from budgetroom.services.history import format_history
from budgetroom.state import state
from budgetroom.utils.money import format_currency, parse_amount
from budgetroom.utils.parse import INCOME_TYPE_LABELS, command_args, parse_id, parse_income_type, to_date_only

personal_router = Router()

log = get_logger(__name__)


async def _user_id(message: Message) -> int | None:
    user = message.from_user
    if not user:
        return None
    user_id = await get_global_repository().ensure_user(user.id, user.username, user.full_name)
    bind_context(tg_id=user.id, user_id=user_id)
    return user_id


def _today():
    return datetime.now(get_settings().zoneinfo).date()


@personal_router.message(Command("expense"))
async def cmd_expense(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    settings = get_settings()
    try:
        args = command_args(message.text, "expense")
        if not args or not args[0]:
            await message.answer("Usage: /expense amount | category | note | YYYY-MM-DD")
            return
        amount = parse_amount(args[0])
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return

    category = args[1] if len(args) > 1 and args[1] else "Other"
    description = (args[2] if len(args) > 2 else None) or None
    day = to_date_only(args[3] if len(args) > 3 else None, _today())
    await get_global_repository().add_expense(user_id, amount, category, description, day)
    log.info("expense.created", category=category)
    await message.answer(f"✅ {format_currency(amount, exact=True, currency=settings.currency)} spent on {hd.quote(category)}")


@personal_router.message(Command("income"))
async def cmd_income(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    settings = get_settings()
    try:
        args = command_args(message.text, "income")
        if not args or not args[0]:
            await message.answer("Usage: /income amount | yearly/monthly/one-time | note | YYYY-MM-DD")
            return
        amount = parse_amount(args[0])
        income_type = parse_income_type(args[1] if len(args) > 1 else None)
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return

    description = (args[2] if len(args) > 2 else None) or None
    day = to_date_only(args[3] if len(args) > 3 else None, _today())
    await get_global_repository().add_income(user_id, amount, income_type, description, day)
    log.info("income.created", income_type=income_type.value)
    await message.answer(
        f"✅ {INCOME_TYPE_LABELS[income_type]} income: "
        f"{format_currency(amount, exact=True, currency=settings.currency)}"
    )


@personal_router.message(Command("budget"))
async def cmd_budget(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    parts = message.text.split()
    if len(parts) != 3:
        await message.answer("Usage: /budget category limit")
        return
    try:
        limit = parse_amount(parts[2])
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return
    budget = await get_global_repository().upsert_budget(user_id, parts[1], limit)
    await message.answer(
        f"✅ Monthly budget #{budget.id} for {hd.quote(budget.category)}: "
        f"{format_currency(budget.budget_limit, exact=True, currency=get_settings().currency)}"
    )


@personal_router.message(Command("budgets"))
async def cmd_budgets(message: Message) -> None:
    user_id = await _user_id(message)
    if user_id is None:
        return
    rows, _ = await collect_budget_status(get_global_repository(), user_id, period_of(_today()))
    if not rows:
        await message.answer("No budgets yet. Add one with /budget category limit")
        return
    await message.answer("<b>Budgets this month</b>\n" + format_budget_lines(rows, get_settings().currency))


@personal_router.message(Command("alerts"))
async def cmd_alerts(message: Message) -> None:
    user_id = await _user_id(message)
    if user_id is None:
        return
    _, alerts = await collect_budget_status(get_global_repository(), user_id, period_of(_today()))
    if not alerts:
        await message.answer("No budget alerts 👌")
        return
    currency = get_settings().currency
    lines = [f"{format_alert(alert, currency)}\n/dismiss {alert.budget_id} {alert.threshold}" for alert in alerts]
    await message.answer("\n\n".join(lines))


@personal_router.message(Command("dismiss"))
async def cmd_dismiss(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    parts = message.text.split()
    if len(parts) != 3 or not parts[2].isdigit():
        await message.answer("Usage: /dismiss budget_id threshold")
        return
    try:
        budget = await dismiss_alert(
            get_global_repository(), user_id, parse_id(parts[1]), int(parts[2]), period_of(_today())
        )
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return
    log.info("alerts.dismissed", budget_id=budget.id, threshold=int(parts[2]))
    await message.answer(f"✅ Alert for {hd.quote(budget.category)} dismissed for this month.")



@personal_router.message(Command("stats"))
async def cmd_stats(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    parts = message.text.split()
    period = parts[1].lower() if len(parts) > 1 else "month"
    if period not in PERIODS:
        await message.answer("Usage: /stats [week|month|year]")
        return

    currency = get_settings().currency
    today = _today()
    transactions = await get_global_repository().list_transactions(user_id)
    start, end = date_range_for_period(period, today)  # type: ignore[arg-type]
    income, spent = totals_between(transactions, start, end)

    heading = period_heading(period)  # type: ignore[arg-type]
    lines = [f"<b>Stats for {heading}</b>", f"Income: {format_currency(income, currency=currency)}"]
    lines.append(f"Spent: {format_currency(spent, currency=currency)}")
    rate = savings_rate(income, spent)
    if rate is not None:
        lines.append(f"Savings rate: {rate}%")

    breakdown = expense_breakdown(transactions, period, today)  # type: ignore[arg-type]
    if breakdown:
        lines.append("")
        lines.append("<b>By category</b>")
        for item in breakdown:
            lines.append(f"• {hd.quote(item.name)}: {format_currency(item.value, currency=currency)} ({item.percent}%)")

    trend = spending_trend(transactions, period, today)  # type: ignore[arg-type]
    peak = max(trend, key=lambda point: point.spent)
    if peak.spent > 0:
        bucket = "week of " if period == "year" else ""
        lines.append(f"Peak: {bucket}{peak.label} ({format_currency(peak.spent, currency=currency)})")

    top = top_spending(transactions, period, today, limit=3)  # type: ignore[arg-type]
    if top:
        lines.append("")
        lines.append("Top: " + ", ".join(hd.quote(name) for name, _ in top))
    await message.answer("\n".join(lines))


@personal_router.message(Command("history"))
async def cmd_history(message: Message) -> None:
    user_id = await _user_id(message)
    if user_id is None:
        return
    transactions = await get_global_repository().list_transactions(user_id)
    await message.answer(format_history(transactions, get_settings().currency))


def _record_id(message: Message) -> int | None:
    parts = (message.text or "").split()
    if len(parts) != 2:
        return None
    try:
        return parse_id(parts[1])
    except ValueError:
        return None


@personal_router.message(Command("delexpense"))
async def cmd_delexpense(message: Message) -> None:
    user_id = await _user_id(message)
    if user_id is None:
        return
    expense_id = _record_id(message)
    if expense_id is None:
        await message.answer("Usage: /delexpense id (see /history)")
        return
    if not await get_global_repository().delete_expense(user_id, expense_id):
        await message.answer("❌ Expense not found")
        return
    log.info("expense.deleted", expense_id=expense_id)
    await message.answer(f"🗑 Expense #{expense_id} deleted.")


@personal_router.message(Command("delincome"))
async def cmd_delincome(message: Message) -> None:
    user_id = await _user_id(message)
    if user_id is None:
        return
    income_id = _record_id(message)
    if income_id is None:
        await message.answer("Usage: /delincome id (see /history)")
        return
    if not await get_global_repository().delete_income(user_id, income_id):
        await message.answer("❌ Income not found")
        return
    log.info("income.deleted", income_id=income_id)
    await message.answer(f"🗑 Income #{income_id} deleted.")


def _edit_args(text: str, command: str) -> tuple[int, Decimal, list[str]]:
    """``/<command> id amount | second | note | date`` split into id, amount and the rest."""
    args = command_args(text, command)
    head = args[0].split() if args else []
    if len(head) != 2:
        raise ValueError(f"Usage: /{command} id amount | ... (see /history)")
    return parse_id(head[0]), parse_amount(head[1]), args[1:]


@personal_router.message(Command("editexpense"))
async def cmd_editexpense(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    try:
        expense_id, amount, rest = _edit_args(message.text, "editexpense")
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return
    category = rest[0] if rest and rest[0] else "Other"
    description = (rest[1] if len(rest) > 1 else None) or None
    day = to_date_only(rest[2] if len(rest) > 2 else None, _today())
    if not await get_global_repository().update_expense(user_id, expense_id, amount, category, description, day):
        await message.answer("❌ Expense not found")
        return
    log.info("expense.updated", expense_id=expense_id)
    await message.answer(f"✅ Expense #{expense_id} updated.")


@personal_router.message(Command("editincome"))
async def cmd_editincome(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    try:
        income_id, amount, rest = _edit_args(message.text, "editincome")
        income_type = parse_income_type(rest[0] if rest and rest[0] else None)
    except ValueError as exc:
        await message.answer(f"❌ {exc}")
        return
    description = (rest[1] if len(rest) > 1 else None) or None
    day = to_date_only(rest[2] if len(rest) > 2 else None, _today())
    if not await get_global_repository().update_income(user_id, income_id, amount, income_type, description, day):
        await message.answer("❌ Income not found")
        return
    log.info("income.updated", income_id=income_id)
    await message.answer(f"✅ Income #{income_id} updated.")


@personal_router.message(Command("wipe"))
async def cmd_wipe(message: Message) -> None:
    if not message.text:
        return
    user_id = await _user_id(message)
    if user_id is None:
        return
    parts = message.text.split()
    if len(parts) != 2 or parts[1] != "confirm":
        await message.answer(
            "⚠️ This deletes all your expenses, income, budgets and the rooms you created.\n"
            "Send /wipe confirm to continue."
        )
        return
    await get_global_repository().wipe_user_data(user_id)
    if message.from_user:
        state.clear_current_room(message.from_user.id)
    log.info("user.wiped")
    await message.answer("🗑 All your data has been deleted.")
