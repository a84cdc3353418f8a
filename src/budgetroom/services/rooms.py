from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from aiogram.utils.text_decorations import html_decoration as hd

from budgetroom.db.models import ExpenseSplit, RoomMember, Settlement, SharedExpense, SplitType
from budgetroom.logging import get_logger
from budgetroom.services.ledger import (
    Debt,
    MemberTotal,
    compute_owed_per_user,
    compute_owed_to_each,
    display_name_for,
    find_unattributed,
)
from budgetroom.services.settlement import Transfer, compute_net_balances, suggest_transfers
from budgetroom.services.split import SplitValidationError, validate_custom_splits
from budgetroom.utils.money import format_currency


log = get_logger(__name__)


class RoomRepository(Protocol):
    async def list_room_members(self, room_id: int) -> list[RoomMember]: ...

    async def list_shared_expenses(self, room_id: int) -> list[SharedExpense]: ...

    async def list_room_splits(self, room_id: int) -> list[ExpenseSplit]: ...

    async def list_settlements(self, room_id: int) -> list[Settlement]: ...

    async def create_shared_expense(
        self,
        room_id: int,
        amount: Decimal,
        category: str,
        description: Optional[str],
        day: date,
        paid_by: int,
        split_type: SplitType,
        splits: Optional[dict[int, Decimal]] = None,
    ) -> int: ...


@dataclass(slots=True, frozen=True)
class RoomSnapshot:
    room_id: int
    members: Sequence[RoomMember]
    expenses: Sequence[SharedExpense]
    splits: Sequence[ExpenseSplit] = field(default_factory=tuple)
    settlements: Sequence[Settlement] = field(default_factory=tuple)

    @property
    def display_names(self) -> dict[int, str]:
        return {m.user_id: m.display_name for m in self.members if m.display_name}

    @property
    def member_ids(self) -> list[int]:
        return [m.user_id for m in self.members]

    def owed_to_each(self, user_id: int) -> list[Debt]:
        return compute_owed_to_each(
            self.expenses, self.members, self.splits, self.settlements, self.display_names, user_id
        )

    def owed_per_user(self, user_id: Optional[int]) -> list[MemberTotal]:
        return compute_owed_per_user(self.expenses, self.members, self.splits, self.display_names, user_id)

    def transfers(self) -> list[Transfer]:
        return suggest_transfers(
            compute_net_balances(self.expenses, self.members, self.splits, self.settlements)
        )


async def load_room_snapshot(repo: RoomRepository, room_id: int) -> RoomSnapshot:
    snapshot = RoomSnapshot(
        room_id=room_id,
        members=tuple(await repo.list_room_members(room_id)),
        expenses=tuple(await repo.list_shared_expenses(room_id)),
        splits=tuple(await repo.list_room_splits(room_id)),
        settlements=tuple(await repo.list_settlements(room_id)),
    )
    log.info(
        "room.snapshot",
        room_id=room_id,
        members=len(snapshot.members),
        expenses=len(snapshot.expenses),
        settlements=len(snapshot.settlements),
    )
    return snapshot


async def add_shared_expense(
    repo: RoomRepository,
    room_id: int,
    paid_by: int,
    amount: Decimal,
    category: str,
    split_type: SplitType,
    day: date,
    description: Optional[str] = None,
    shares: Optional[Sequence[tuple[int, Decimal]]] = None,
) -> int:
    """Validate and store a shared expense. Custom shares must cover the
    whole amount and belong to room members."""
    splits: Optional[dict[int, Decimal]] = None
    if split_type == SplitType.CUSTOM:
        members = await repo.list_room_members(room_id)
        splits = validate_custom_splits(amount, shares or [], [m.user_id for m in members])
    elif shares:
        raise SplitValidationError("Shares are only allowed for a custom split.")

    expense_id = await repo.create_shared_expense(
        room_id=room_id,
        amount=amount,
        category=category,
        description=description,
        day=day,
        paid_by=paid_by,
        split_type=split_type,
        splits=splits,
    )
    log.info("room.expense.created", room_id=room_id, expense_id=expense_id, split_type=split_type.value)
    return expense_id


def format_debts(debts: Sequence[Debt], currency: str = "USD") -> str:
    if not debts:
        return "You're all settled up 🎉"
    lines = ["<b>You owe</b>"]
    for debt in debts:
        lines.append(f"• {hd.quote(debt.display_name)}: {format_currency(debt.amount, exact=True, currency=currency)}")
    return "\n".join(lines)


def format_totals(totals: Sequence[MemberTotal], currency: str = "USD") -> str:
    if not totals:
        return "No members in this room yet."
    lines = ["<b>Share of room spending</b>"]
    for total in totals:
        lines.append(f"• {hd.quote(total.display_name)}: {format_currency(total.amount, exact=True, currency=currency)}")
    return "\n".join(lines)


def format_transfers(snapshot: RoomSnapshot, viewer_id: int, currency: str = "USD") -> str:
    transfers = snapshot.transfers()
    if not transfers:
        return "Everyone is even."
    names = snapshot.display_names
    lines = ["<b>Suggested transfers</b>"]
    for transfer in transfers:
        lines.append(
            f"• {hd.quote(display_name_for(transfer.from_user, names, viewer_id))} → "
            f"{hd.quote(display_name_for(transfer.to_user, names, viewer_id))}: "
            f"{format_currency(transfer.amount, exact=True, currency=currency)}"
        )
    return "\n".join(lines)


def format_unattributed_warning(snapshot: RoomSnapshot, user_id: int) -> Optional[str]:
    missing = find_unattributed(snapshot.expenses, snapshot.members, snapshot.splits, user_id)
    if not missing:
        return None
    ids = ", ".join(f"#{item.expense_id}" for item in missing)
    return f"⚠️ Some expenses could not be attributed: {ids}"
