from __future__ import annotations

from typing import Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from budgetroom.db.models import Room


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🏠 My rooms", callback_data="menu:rooms")],
            [
                InlineKeyboardButton(text="➕ New room", callback_data="menu:newroom"),
                InlineKeyboardButton(text="🔑 Join room", callback_data="menu:join"),
            ],
            [InlineKeyboardButton(text="ℹ️ Help", callback_data="menu:help")],
        ]
    )


def rooms_keyboard(rooms: Sequence[Room], current_room_id: int | None = None) -> InlineKeyboardMarkup:
    rows: list[list[InlineKeyboardButton]] = []
    for room in rooms:
        marker = "· " if room.id == current_room_id else ""
        rows.append([InlineKeyboardButton(text=f"{marker}{room.name}", callback_data=f"room:{room.id}")])
    rows.append([InlineKeyboardButton(text="◀️ Back", callback_data="menu:main")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def room_keyboard(room_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="💸 I owe", callback_data=f"owed:{room_id}"),
                InlineKeyboardButton(text="📊 Totals", callback_data=f"totals:{room_id}"),
            ],
            [InlineKeyboardButton(text="⚖️ Balances", callback_data=f"balances:{room_id}")],
            [InlineKeyboardButton(text="◀️ Rooms", callback_data="menu:rooms")],
        ]
    )


def back_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="◀️ Back to menu", callback_data="menu:main")]]
    )
