from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message
from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.db.repo import get_global_repository
from budgetroom.keyboards import back_keyboard, main_menu_keyboard
from budgetroom.logging import bind_context, get_logger
from budgetroom.state import AWAIT_INVITE_CODE, AWAIT_ROOM_NAME, state

basic_router = Router()

log = get_logger(__name__)

HELP_TEXT = (
    "<b>📖 Commands</b>\n\n"
    "<b>Rooms:</b>\n"
    "/newroom [name] - create a room\n"
    "/rooms - your rooms\n"
    "/join [code] - join with an invite code\n"
    "/room [id] - select the current room\n"
    "/members - members of the current room\n"
    "/addshared amount | category | full/equal/custom | @user=amount ... | note\n"
    "/owed - what you owe in the current room\n"
    "/totals - everyone's share of room spending\n"
    "/balances - net balances and suggested transfers\n"
    "/settle @user amount - record a payment\n"
    "/roombudget [category limit] - room budgets\n"
    "/delshared id - delete a shared expense you paid\n"
    "/renameroom name, /kick @user, /deleteroom - owner only\n\n"
    "<b>Personal:</b>\n"
    "/expense amount | category | note | date\n"
    "/income amount | yearly/monthly/one-time | note | date\n"
    "/budget category limit\n"
    "/budgets - budgets for this month\n"
    "/stats [week|month|year]\n"
    "/history - recent transactions\n"
    "/editexpense id amount | category | note | date, /delexpense id\n"
    "/editincome id amount | type | note | date, /delincome id\n"
    "/alerts - budget alerts\n"
    "/dismiss budget_id threshold\n"
    "/wipe - delete all your data"
)

WELCOME_TEXT = (
    "👋 Hi, {name}!\n\n"
    "I'm <b>BudgetRoom</b>: I track your spending and split shared costs with your roommates.\n\n"
    "Pick an action:"
)


@basic_router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    user = message.from_user
    if not user:
        return

    state.clear_user(user.id)
    bind_context(tg_id=user.id)
    repo = get_global_repository()
    user_id = await repo.ensure_user(user.id, user.username, user.full_name)

    # deep link: /start join_<invite code>
    if message.text and len(message.text.split()) > 1:
        param = message.text.split()[1]
        if param.startswith("join_"):
            room = await repo.join_room_by_invite_code(param[5:], user_id)
            if room is None:
                await message.answer("❌ Room not found. Check the invite code.", reply_markup=main_menu_keyboard())
                return
            state.set_current_room(user.id, room.id)
            log.info("room.joined", room_id=room.id, user_id=user_id)
            await message.answer(f"✅ You joined <b>{hd.quote(room.name)}</b>.", reply_markup=main_menu_keyboard())
            return

    await message.answer(WELCOME_TEXT.format(name=hd.quote(user.first_name)), reply_markup=main_menu_keyboard())


@basic_router.callback_query(lambda c: c.data == "menu:main")
async def cb_main_menu(callback: CallbackQuery) -> None:
    user = callback.from_user
    state.pop_awaiting(user.id)
    await callback.message.edit_text(
        WELCOME_TEXT.format(name=hd.quote(user.first_name)),
        reply_markup=main_menu_keyboard(),
    )
    await callback.answer()


@basic_router.callback_query(lambda c: c.data == "menu:help")
async def cb_help_menu(callback: CallbackQuery) -> None:
    await callback.message.edit_text(HELP_TEXT, reply_markup=back_keyboard())
    await callback.answer()


@basic_router.callback_query(lambda c: c.data == "menu:newroom")
async def cb_new_room(callback: CallbackQuery) -> None:
    state.set_awaiting(callback.from_user.id, AWAIT_ROOM_NAME)
    await callback.message.edit_text("➕ How should the room be called?", reply_markup=back_keyboard())
    await callback.answer()


@basic_router.callback_query(lambda c: c.data == "menu:join")
async def cb_join_room(callback: CallbackQuery) -> None:
    state.set_awaiting(callback.from_user.id, AWAIT_INVITE_CODE)
    await callback.message.edit_text("🔑 Send me the invite code.", reply_markup=back_keyboard())
    await callback.answer()


@basic_router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)
