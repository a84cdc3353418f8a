from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message, User
from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.config import get_settings
from budgetroom.db.repo import BudgetRoomRepository, get_global_repository
from budgetroom.keyboards import room_keyboard, rooms_keyboard
from budgetroom.logging import bind_context, get_logger
from budgetroom.services.authz import AuthorizationError, assert_room_member, assert_room_owner
from budgetroom.services.budgets import (
    budgets_with_spent,
    format_budget_lines,
    period_of,
    room_spending_by_category,
)
from budgetroom.services.rooms import (
    add_shared_expense,
    format_debts,
    format_totals,
    format_transfers,
    format_unattributed_warning,
    load_room_snapshot,
)
from budgetroom.services.split import split_equally
from budgetroom.state import AWAIT_INVITE_CODE, AWAIT_ROOM_NAME, state
from budgetroom.utils.money import format_currency, parse_amount
from budgetroom.utils.parse import command_args, parse_share_tokens, parse_split_type

rooms_router = Router()

log = get_logger(__name__)

NO_ROOM_TEXT = "Select a room first: /rooms or /room [id]"


def get_repo() -> BudgetRoomRepository:
    return get_global_repository()


async def _current_member(message: Message) -> Optional[tuple[int, int]]:
    """Resolve (user_id, room_id) for the sender, answering when no room is selected."""
    user = message.from_user
    if not user:
        return None
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    room_id = state.get_current_room(user.id)
    bind_context(tg_id=user.id, user_id=user_id, room_id=room_id)
    if room_id is None:
        await message.answer(NO_ROOM_TEXT)
        return None
    await assert_room_member(repo.db, user_id, room_id)
    return user_id, room_id


async def _resolve_user_id(repo: BudgetRoomRepository, username: str) -> int:
    row = await repo.get_user_by_username(username)
    if row is None:
        raise ValueError(f"@{username.lstrip('@')} has not started the bot yet")
    return int(row["id"])


async def _create_room(message: Message, user: User, name: str) -> None:
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    room = await repo.create_room(user_id, name)
    state.set_current_room(user.id, room.id)
    log.info("room.created", room_id=room.id, user_id=user_id)
    await message.answer(
        f"🏠 Room <b>{hd.quote(room.name)}</b> created (#{room.id}).\n"
        f"Invite code: <code>{room.invite_code}</code>",
        reply_markup=room_keyboard(room.id),
    )


async def _join_room(message: Message, user: User, code: str) -> None:
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    room = await repo.join_room_by_invite_code(code, user_id)
    if room is None:
        await message.answer("❌ Room not found. Check the invite code.")
        return
    state.set_current_room(user.id, room.id)
    log.info("room.joined", room_id=room.id, user_id=user_id)
    await message.answer(f"✅ You joined <b>{hd.quote(room.name)}</b>.", reply_markup=room_keyboard(room.id))


@rooms_router.message(Command("newroom"))
async def cmd_newroom(message: Message) -> None:
    user = message.from_user
    if not user or not message.text:
        return
    parts = message.text.split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip():
        state.set_awaiting(user.id, AWAIT_ROOM_NAME)
        await message.answer("How should the room be called?")
        return
    await _create_room(message, user, parts[1].strip())


@rooms_router.message(Command("join"))
async def cmd_join(message: Message) -> None:
    user = message.from_user
    if not user or not message.text:
        return
    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Usage: /join [invite code]")
        return
    await _join_room(message, user, parts[1])


@rooms_router.message(Command("rooms"))
async def cmd_rooms(message: Message) -> None:
    user = message.from_user
    if not user:
        return
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    rooms = await repo.list_rooms_for_user(user_id)
    if not rooms:
        await message.answer("You have no rooms yet. Create one with /newroom or join with /join.")
        return
    await message.answer(
        "🏠 <b>Your rooms</b>",
        reply_markup=rooms_keyboard(rooms, state.get_current_room(user.id)),
    )


@rooms_router.callback_query(lambda c: c.data == "menu:rooms")
async def cb_rooms(callback: CallbackQuery) -> None:
    user = callback.from_user
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    rooms = await repo.list_rooms_for_user(user_id)
    text = "🏠 <b>Your rooms</b>" if rooms else "You have no rooms yet."
    await callback.message.edit_text(text, reply_markup=rooms_keyboard(rooms, state.get_current_room(user.id)))
    await callback.answer()


async def _select_room(user: User, room_id: int) -> str:
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    await assert_room_member(repo.db, user_id, room_id)
    room = await repo.get_room(room_id)
    assert room is not None
    state.set_current_room(user.id, room_id)
    return f"🏠 <b>{hd.quote(room.name)}</b>\nInvite code: <code>{room.invite_code}</code>"


@rooms_router.message(Command("room"))
async def cmd_room(message: Message) -> None:
    user = message.from_user
    if not user or not message.text:
        return
    parts = message.text.split()
    if len(parts) != 2 or not parts[1].isdigit():
        await message.answer("Usage: /room [id]")
        return
    room_id = int(parts[1])
    try:
        text = await _select_room(user, room_id)
    except AuthorizationError as exc:
        await message.answer(str(exc))
        return
    await message.answer(text, reply_markup=room_keyboard(room_id))


@rooms_router.callback_query(F.data.startswith("room:"))
async def cb_room(callback: CallbackQuery) -> None:
    room_id = int(callback.data.split(":", 1)[1])
    try:
        text = await _select_room(callback.from_user, room_id)
    except AuthorizationError as exc:
        await callback.answer(str(exc), show_alert=True)
        return
    await callback.message.edit_text(text, reply_markup=room_keyboard(room_id))
    await callback.answer()


@rooms_router.message(Command("members"))
async def cmd_members(message: Message) -> None:
    try:
        current = await _current_member(message)
    except AuthorizationError as exc:
        await message.answer(str(exc))
        return
    if current is None:
        return
    _, room_id = current
    members = await get_repo().list_room_members(room_id)
    lines = ["<b>Members</b>"]
    for member in members:
        role = " (owner)" if member.role == "owner" else ""
        lines.append(f"• {hd.quote(member.display_name or f'User #{member.user_id}')}{role}")
    await message.answer("\n".join(lines))


@rooms_router.message(Command("addshared"))
async def cmd_addshared(message: Message) -> None:
    if not message.text:
        return
    settings = get_settings()
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current

        args = command_args(message.text, "addshared")
        if len(args) < 3:
            await message.answer("Usage: /addshared amount | category | full/equal/custom | @user=amount ... | note")
            return
        amount = parse_amount(args[0])
        category = args[1] or "Other"
        split_type = parse_split_type(args[2])

        shares: list[tuple[int, Decimal]] = []
        description: Optional[str] = None
        rest = args[3:]
        if split_type == "custom":
            if not rest:
                await message.answer("Custom split needs shares: @user=amount ...")
                return
            for username, share in parse_share_tokens(rest[0]):
                shares.append((await _resolve_user_id(repo, username), share))
            rest = rest[1:]
        if rest:
            description = rest[0] or None

        today = datetime.now(settings.zoneinfo).date()
        expense_id = await add_shared_expense(
            repo,
            room_id=room_id,
            paid_by=user_id,
            amount=amount,
            category=category,
            split_type=split_type,
            day=today,
            description=description,
            shares=shares or None,
        )
    except (ValueError, AuthorizationError) as exc:
        await message.answer(f"❌ {exc}")
        return

    text = (
        f"✅ Shared expense #{expense_id}: {format_currency(amount, exact=True, currency=settings.currency)} "
        f"for {hd.quote(category)} ({split_type.value})"
    )
    if split_type == "equal":
        members = await repo.list_room_members(room_id)
        if members:
            shares = split_equally(amount, [m.user_id for m in members])
            each = sorted(set(shares.values()))
            text += "\n≈ " + " / ".join(format_currency(s, exact=True, currency=settings.currency) for s in each)
            text += " each"
    await message.answer(text)


@rooms_router.message(Command("delshared"))
async def cmd_delshared(message: Message) -> None:
    if not message.text:
        return
    parts = message.text.split()
    if len(parts) != 2 or not parts[1].isdigit():
        await message.answer("Usage: /delshared [expense id]")
        return
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current
        expense = await repo.get_shared_expense(int(parts[1]))
        if expense is None or expense.room_id != room_id:
            raise ValueError("Expense not found in this room")
        if expense.paid_by != user_id:
            await assert_room_owner(repo.db, user_id, room_id)
    except (ValueError, AuthorizationError) as exc:
        await message.answer(f"❌ {exc}")
        return
    await repo.delete_shared_expense(expense.id)
    log.info("room.expense.deleted", room_id=room_id, expense_id=expense.id)
    await message.answer(f"🗑 Shared expense #{expense.id} deleted.")


async def _owed_text(user_id: int, room_id: int) -> str:
    settings = get_settings()
    snapshot = await load_room_snapshot(get_repo(), room_id)
    text = format_debts(snapshot.owed_to_each(user_id), settings.currency)
    warning = format_unattributed_warning(snapshot, user_id)
    return f"{text}\n\n{warning}" if warning else text


async def _totals_text(user_id: int, room_id: int) -> str:
    snapshot = await load_room_snapshot(get_repo(), room_id)
    return format_totals(snapshot.owed_per_user(user_id), get_settings().currency)


async def _balances_text(user_id: int, room_id: int) -> str:
    snapshot = await load_room_snapshot(get_repo(), room_id)
    return format_transfers(snapshot, user_id, get_settings().currency)


ROOM_VIEWS = {
    "owed": _owed_text,
    "totals": _totals_text,
    "balances": _balances_text,
}


@rooms_router.message(Command("owed", "totals", "balances"))
async def cmd_room_view(message: Message) -> None:
    if not message.text:
        return
    view = message.text.split()[0].lstrip("/").split("@")[0]
    try:
        current = await _current_member(message)
    except AuthorizationError as exc:
        await message.answer(str(exc))
        return
    if current is None:
        return
    user_id, room_id = current
    await message.answer(await ROOM_VIEWS[view](user_id, room_id))


@rooms_router.callback_query(F.data.regexp(r"^(owed|totals|balances):\d+$"))
async def cb_room_view(callback: CallbackQuery) -> None:
    view, raw_room_id = callback.data.split(":", 1)
    room_id = int(raw_room_id)
    user = callback.from_user
    repo = get_repo()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)
    try:
        await assert_room_member(repo.db, user_id, room_id)
    except AuthorizationError as exc:
        await callback.answer(str(exc), show_alert=True)
        return
    await callback.message.edit_text(await ROOM_VIEWS[view](user_id, room_id), reply_markup=room_keyboard(room_id))
    await callback.answer()


@rooms_router.message(Command("settle"))
async def cmd_settle(message: Message) -> None:
    if not message.text:
        return
    parts = message.text.split()
    if len(parts) != 3:
        await message.answer("Usage: /settle @user amount")
        return
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current
        to_user_id = await _resolve_user_id(repo, parts[1])
        if to_user_id == user_id:
            raise ValueError("You cannot settle with yourself")
        await assert_room_member(repo.db, to_user_id, room_id)
        amount = parse_amount(parts[2])
    except (ValueError, AuthorizationError) as exc:
        await message.answer(f"❌ {exc}")
        return

    await repo.create_settlement(room_id, user_id, to_user_id, amount)
    log.info("room.settlement.created", room_id=room_id, from_user_id=user_id, to_user_id=to_user_id)
    await message.answer(await _owed_text(user_id, room_id))


@rooms_router.message(Command("renameroom"))
async def cmd_renameroom(message: Message) -> None:
    if not message.text:
        return
    parts = message.text.split(maxsplit=1)
    if len(parts) < 2:
        await message.answer("Usage: /renameroom [name]")
        return
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current
        await assert_room_owner(repo.db, user_id, room_id)
    except AuthorizationError as exc:
        await message.answer(str(exc))
        return
    await repo.update_room_field(room_id, "name", parts[1].strip())
    await message.answer("✅ Room renamed.")


@rooms_router.message(Command("kick"))
async def cmd_kick(message: Message) -> None:
    if not message.text:
        return
    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Usage: /kick @user")
        return
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current
        await assert_room_owner(repo.db, user_id, room_id)
        target_id = await _resolve_user_id(repo, parts[1])
        if target_id == user_id:
            raise ValueError("The owner cannot leave their own room")
    except (ValueError, AuthorizationError) as exc:
        await message.answer(f"❌ {exc}")
        return
    await repo.remove_room_member(room_id, target_id)
    await message.answer("✅ Member removed.")


@rooms_router.message(Command("deleteroom"))
async def cmd_deleteroom(message: Message) -> None:
    repo = get_repo()
    try:
        current = await _current_member(message)
        if current is None:
            return
        user_id, room_id = current
        await assert_room_owner(repo.db, user_id, room_id)
    except AuthorizationError as exc:
        await message.answer(str(exc))
        return
    await repo.delete_room(room_id)
    if message.from_user:
        state.clear_current_room(message.from_user.id)
    log.info("room.deleted", room_id=room_id, user_id=user_id)
    await message.answer("🗑 Room deleted.")


@rooms_router.message(Command("roombudget"))
async def cmd_roombudget(message: Message) -> None:
    if not message.text:
        return
    settings = get_settings()
    repo = get_repo()
    parts = message.text.split()
    try:
        current = await _current_member(message)
        if current is None:
            return
        _, room_id = current
        if len(parts) == 3:
            budget = await repo.create_room_budget(room_id, parts[1], parse_amount(parts[2]))
            await message.answer(
                f"✅ Room budget for {hd.quote(budget.category)}: "
                f"{format_currency(budget.budget_limit, exact=True, currency=settings.currency)}"
            )
            return
        if len(parts) != 1:
            await message.answer("Usage: /roombudget [category limit]")
            return
    except (ValueError, AuthorizationError) as exc:
        await message.answer(f"❌ {exc}")
        return

    period = period_of(datetime.now(settings.zoneinfo).date())
    budgets = await repo.list_room_budgets(room_id)
    expenses = await repo.list_shared_expenses(room_id)
    rows = budgets_with_spent(budgets, room_spending_by_category(expenses, period))
    await message.answer(format_budget_lines(rows, settings.currency) or "No room budgets yet.")


@rooms_router.message(F.text & ~F.text.startswith("/"))
async def on_prompt_reply(message: Message) -> None:
    user = message.from_user
    if not user or not message.text:
        return
    prompt = state.pop_awaiting(user.id)
    if prompt == AWAIT_ROOM_NAME:
        await _create_room(message, user, message.text.strip())
    elif prompt == AWAIT_INVITE_CODE:
        await _join_room(message, user, message.text.strip())
