"""Per-chat state for the bot: the selected room and pending prompts."""

from __future__ import annotations

from typing import Optional

AWAIT_ROOM_NAME = "room_name"
AWAIT_INVITE_CODE = "invite_code"


class UserStateManager:
    def __init__(self) -> None:
        self._current_room: dict[int, int] = {}
        self._awaiting: dict[int, str] = {}

    def set_current_room(self, tg_id: int, room_id: int) -> None:
        self._current_room[tg_id] = room_id

    def get_current_room(self, tg_id: int) -> Optional[int]:
        return self._current_room.get(tg_id)

    def clear_current_room(self, tg_id: int) -> None:
        self._current_room.pop(tg_id, None)

    def set_awaiting(self, tg_id: int, prompt: str) -> None:
        self._awaiting[tg_id] = prompt

    def get_awaiting(self, tg_id: int) -> Optional[str]:
        return self._awaiting.get(tg_id)

    def pop_awaiting(self, tg_id: int) -> Optional[str]:
        return self._awaiting.pop(tg_id, None)

    def clear_user(self, tg_id: int) -> None:
        self._current_room.pop(tg_id, None)
        self._awaiting.pop(tg_id, None)


state = UserStateManager()
