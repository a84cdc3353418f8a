"""Debt ledger for shared rooms.

Everything here works on immutable snapshots of a room (members, shared
expenses, custom split rows, settlements) and returns plain values. The
functions are recomputed from scratch after every fetch or mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence, Union

from budgetroom.db.models import ExpenseSplit, RoomMember, Settlement, SharedExpense, SplitType


ZERO = Decimal("0")
YOU_LABEL = "You"

NO_MEMBERS = "no_members"
MISSING_SPLITS = "missing_splits"
UNKNOWN_SPLIT_TYPE = "unknown_split_type"


@dataclass(slots=True, frozen=True)
class Resolved:
    amount: Decimal


@dataclass(slots=True, frozen=True)
class Unattributed:
    reason: str


ShareResolution = Union[Resolved, Unattributed]


@dataclass(slots=True, frozen=True)
class MemberTotal:
    member_id: int
    amount: Decimal
    display_name: str


@dataclass(slots=True, frozen=True)
class Debt:
    to_member_id: int
    amount: Decimal
    display_name: str


@dataclass(slots=True, frozen=True)
class UnattributedExpense:
    expense_id: int
    reason: str


def display_name_for(member_id: int, display_names: Mapping[int, str], current_user_id: Optional[int]) -> str:
    if member_id == current_user_id:
        return YOU_LABEL
    name = display_names.get(member_id)
    return name if name else f"User #{member_id}"


def index_splits(splits: Iterable[ExpenseSplit]) -> dict[int, dict[int, Decimal]]:
    """Group split rows as ``{expense_id: {user_id: amount}}``.

    Duplicate rows for the same member are added together.
    """
    index: dict[int, dict[int, Decimal]] = {}
    for split in splits:
        rows = index.setdefault(split.shared_expense_id, {})
        rows[split.user_id] = rows.get(split.user_id, ZERO) + split.amount
    return index


def resolve_share(
    expense: SharedExpense,
    member_id: int,
    member_count: int,
    expense_splits: Mapping[int, Decimal],
) -> ShareResolution:
    """Resolve how much of ``expense`` is attributed to ``member_id``.

    ``full`` puts the whole amount on the payer, ``equal`` divides it over
    ``member_count`` and ``custom`` reads the member's split row. Cases the
    snapshot cannot answer come back as :class:`Unattributed`.
    """
    if expense.split_type == SplitType.FULL:
        return Resolved(expense.amount if member_id == expense.paid_by else ZERO)
    if expense.split_type == SplitType.EQUAL:
        if member_count <= 0:
            return Unattributed(NO_MEMBERS)
        return Resolved(expense.amount / member_count)
    if expense.split_type == SplitType.CUSTOM:
        if not expense_splits:
            return Unattributed(MISSING_SPLITS)
        return Resolved(expense_splits.get(member_id, ZERO))
    return Unattributed(UNKNOWN_SPLIT_TYPE)


def share_amount(resolution: ShareResolution) -> Decimal:
    if isinstance(resolution, Resolved):
        return resolution.amount
    return ZERO


def compute_owed_per_user(
    expenses: Sequence[SharedExpense],
    members: Sequence[RoomMember],
    splits: Sequence[ExpenseSplit],
    display_names: Mapping[int, str],
    current_user_id: Optional[int],
) -> list[MemberTotal]:
    member_ids = [member.user_id for member in members]
    member_count = len(member_ids)
    split_index = index_splits(splits)

    totals: dict[int, Decimal] = {member_id: ZERO for member_id in member_ids}
    for expense in expenses:
        expense_splits = split_index.get(expense.id, {})
        for member_id in member_ids:
            share = share_amount(resolve_share(expense, member_id, member_count, expense_splits))
            totals[member_id] += share

    return [
        MemberTotal(
            member_id=member_id,
            amount=totals[member_id],
            display_name=display_name_for(member_id, display_names, current_user_id),
        )
        for member_id in member_ids
    ]


def compute_owed_to_each(
    expenses: Sequence[SharedExpense],
    members: Sequence[RoomMember],
    splits: Sequence[ExpenseSplit],
    settlements: Sequence[Settlement],
    display_names: Mapping[int, str],
    current_user_id: int,
) -> list[Debt]:
    member_count = len(members)
    split_index = index_splits(splits)

    owed: dict[int, Decimal] = {}
    for expense in expenses:
        if expense.paid_by == current_user_id:
            continue
        resolution = resolve_share(expense, current_user_id, member_count, split_index.get(expense.id, {}))
        share = share_amount(resolution)
        if share > 0:
            owed[expense.paid_by] = owed.get(expense.paid_by, ZERO) + share

    for settlement in settlements:
        if settlement.from_user_id != current_user_id or settlement.to_user_id == current_user_id:
            continue
        debt = owed.get(settlement.to_user_id, ZERO)
        owed[settlement.to_user_id] = max(ZERO, debt - settlement.amount)

    return [
        Debt(
            to_member_id=member_id,
            amount=amount,
            display_name=display_name_for(member_id, display_names, current_user_id),
        )
        for member_id, amount in sorted(owed.items())
        if amount > 0
    ]


def find_unattributed(
    expenses: Sequence[SharedExpense],
    members: Sequence[RoomMember],
    splits: Sequence[ExpenseSplit],
    member_id: int,
) -> list[UnattributedExpense]:
    """List expenses whose share for ``member_id`` fell back to zero because
    the snapshot was incomplete."""
    member_count = len(members)
    split_index = index_splits(splits)
    result: list[UnattributedExpense] = []
    for expense in expenses:
        resolution = resolve_share(expense, member_id, member_count, split_index.get(expense.id, {}))
        if isinstance(resolution, Unattributed):
            result.append(UnattributedExpense(expense_id=expense.id, reason=resolution.reason))
    return result
