from __future__ import annotations

from typing import Protocol


class Repository(Protocol):
    async def fetchval(self, query: str, *args: object) -> object: ...


class AuthorizationError(PermissionError):
    pass


async def get_member_role(repo: Repository, user_id: int, room_id: int) -> str | None:
    role = await repo.fetchval(
        "SELECT role FROM room_members WHERE room_id = $1 AND user_id = $2",
        room_id,
        user_id,
    )
    return str(role) if role is not None else None


async def is_room_owner(repo: Repository, user_id: int, room_id: int) -> bool:
    return await get_member_role(repo, user_id, room_id) == "owner"


async def assert_room_owner(repo: Repository, user_id: int, room_id: int) -> None:
    if not await is_room_owner(repo, user_id, room_id):
        raise AuthorizationError("Only the room owner can do that.")


async def assert_room_member(repo: Repository, user_id: int, room_id: int) -> None:
    if await get_member_role(repo, user_id, room_id) is None:
        raise AuthorizationError("You are not a member of this room.")
