from datetime import date
from decimal import Decimal

import pytest

from budgetroom.db.models import ExpenseSplit, MemberRole, RoomMember, Settlement, SharedExpense, SplitType
from budgetroom.services.rooms import (
    RoomSnapshot,
    add_shared_expense,
    format_debts,
    format_totals,
    format_transfers,
    format_unattributed_warning,
    load_room_snapshot,
)
from budgetroom.services.split import SplitValidationError

MEMBERS = [
    RoomMember(room_id=5, user_id=1, role=MemberRole.OWNER, display_name="@alice"),
    RoomMember(room_id=5, user_id=2, display_name="@bob"),
    RoomMember(room_id=5, user_id=3, display_name="@carol"),
]


class StubRoomRepo:
    def __init__(self) -> None:
        self.created: list[dict] = []
        self.expenses = [
            SharedExpense(id=1, room_id=5, amount=Decimal("90"), paid_by=1, split_type=SplitType.EQUAL),
        ]
        self.settlements: list[Settlement] = []

    async def list_room_members(self, room_id: int):
        return MEMBERS

    async def list_shared_expenses(self, room_id: int):
        return self.expenses

    async def list_room_splits(self, room_id: int):
        return []

    async def list_settlements(self, room_id: int):
        return self.settlements

    async def create_shared_expense(self, **kwargs):
        self.created.append(kwargs)
        return 42


@pytest.mark.asyncio
async def test_add_shared_expense_custom():
    repo = StubRoomRepo()
    expense_id = await add_shared_expense(
        repo,
        room_id=5,
        paid_by=1,
        amount=Decimal("50"),
        category="Food",
        split_type=SplitType.CUSTOM,
        day=date(2024, 5, 1),
        shares=[(2, Decimal("20")), (3, Decimal("30"))],
    )
    assert expense_id == 42
    assert repo.created[0]["splits"] == {2: Decimal("20"), 3: Decimal("30")}


@pytest.mark.asyncio
async def test_add_shared_expense_rejects_bad_custom_split():
    repo = StubRoomRepo()
    with pytest.raises(SplitValidationError):
        await add_shared_expense(
            repo,
            room_id=5,
            paid_by=1,
            amount=Decimal("50"),
            category="Food",
            split_type=SplitType.CUSTOM,
            day=date(2024, 5, 1),
            shares=[(2, Decimal("20")), (4, Decimal("30"))],
        )
    assert repo.created == []


@pytest.mark.asyncio
async def test_add_shared_expense_shares_need_custom():
    repo = StubRoomRepo()
    with pytest.raises(SplitValidationError):
        await add_shared_expense(
            repo,
            room_id=5,
            paid_by=1,
            amount=Decimal("50"),
            category="Food",
            split_type=SplitType.EQUAL,
            day=date(2024, 5, 1),
            shares=[(2, Decimal("50"))],
        )


@pytest.mark.asyncio
async def test_add_shared_expense_equal():
    repo = StubRoomRepo()
    await add_shared_expense(
        repo, 5, 2, Decimal("30"), "Utilities", SplitType.EQUAL, date(2024, 5, 1), description="power"
    )
    assert repo.created[0]["splits"] is None
    assert repo.created[0]["description"] == "power"


@pytest.mark.asyncio
async def test_load_room_snapshot_and_views():
    repo = StubRoomRepo()
    snapshot = await load_room_snapshot(repo, 5)

    assert snapshot.member_ids == [1, 2, 3]
    debts = snapshot.owed_to_each(2)
    assert [(d.display_name, d.amount) for d in debts] == [("@alice", Decimal("30"))]
    assert "@alice: $30.00" in format_debts(debts)

    totals = format_totals(snapshot.owed_per_user(2))
    assert "You: $30.00" in totals

    transfers = format_transfers(snapshot, viewer_id=1)
    assert "@bob → You: $30.00" in transfers
    assert "@carol → You: $30.00" in transfers


@pytest.mark.asyncio
async def test_settled_room():
    repo = StubRoomRepo()
    repo.settlements = [
        Settlement(room_id=5, from_user_id=2, to_user_id=1, amount=Decimal("30")),
        Settlement(room_id=5, from_user_id=3, to_user_id=1, amount=Decimal("30")),
    ]
    snapshot = await load_room_snapshot(repo, 5)

    assert format_debts(snapshot.owed_to_each(2)) == "You're all settled up 🎉"
    assert format_transfers(snapshot, viewer_id=2) == "Everyone is even."


def test_format_totals_empty_room():
    assert format_totals([]) == "No members in this room yet."


def test_unattributed_warning():
    snapshot = RoomSnapshot(
        room_id=5,
        members=MEMBERS,
        expenses=(
            SharedExpense(id=8, room_id=5, amount=Decimal("10"), paid_by=1, split_type=SplitType.CUSTOM),
            SharedExpense(id=9, room_id=5, amount=Decimal("10"), paid_by=1, split_type=SplitType.CUSTOM),
        ),
        splits=(ExpenseSplit(shared_expense_id=9, user_id=2, amount=Decimal("10")),),
    )
    assert format_unattributed_warning(snapshot, 2) == "⚠️ Some expenses could not be attributed: #8"
    assert format_unattributed_warning(RoomSnapshot(room_id=5, members=MEMBERS, expenses=()), 2) is None


def test_formatters_escape_names():
    snapshot = RoomSnapshot(
        room_id=5,
        members=(
            RoomMember(room_id=5, user_id=1, role=MemberRole.OWNER, display_name="a<b & co"),
            RoomMember(room_id=5, user_id=2, display_name="@bob"),
        ),
        expenses=(SharedExpense(id=1, room_id=5, amount=Decimal("10"), paid_by=1, split_type=SplitType.EQUAL),),
    )
    assert "a&lt;b &amp; co: $5.00" in format_debts(snapshot.owed_to_each(2))
    assert "@bob → a&lt;b &amp; co: $5.00" in format_transfers(snapshot, viewer_id=99)
