from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal

import pytest

from budgetroom.db import repo as repo_module
from budgetroom.db.models import IncomeType, MemberRole, SplitType
from budgetroom.db.repo import BudgetRoomRepository, get_global_repository


class DummyConn:
    def __init__(self) -> None:
        self.split_rows: list[tuple] = []
        self.executed: list[tuple] = []

    async def fetchval(self, query: str, *args):
        return 11

    async def executemany(self, query: str, rows):
        self.split_rows.extend(rows)

    async def execute(self, query: str, *args):
        self.executed.append((" ".join(query.split()), args))
        return "OK"


class DummyDB:
    def __init__(self) -> None:
        self.rows: dict[str, list[dict]] = {}
        self.executed: list[tuple] = []
        self.conn = DummyConn()
        self.owned: dict[tuple[str, int], int] = {}
        self.fetchval_calls: list[tuple] = []
        self.fetchrow_calls: list[tuple] = []

    async def fetch(self, query: str, *args):
        for table, rows in self.rows.items():
            if f"FROM {table}" in query:
                return rows
        return []

    async def fetchrow(self, query: str, *args):
        self.fetchrow_calls.append((query, args))
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None

    async def fetchval(self, query: str, *args):
        self.fetchval_calls.append((query, args))
        table = "income" if "income" in query else "expenses"
        record_id, user_id = args[0], args[1]
        return record_id if self.owned.get((table, record_id)) == user_id else None

    async def execute(self, query: str, *args):
        self.executed.append((query, args))
        return "OK"

    @asynccontextmanager
    async def transaction(self):
        yield self.conn


@pytest.mark.asyncio
async def test_list_room_members_display_names():
    db = DummyDB()
    db.rows["room_members"] = [
        {"room_id": 1, "user_id": 1, "role": "owner", "username": "alice", "full_name": "Alice A"},
        {"room_id": 1, "user_id": 2, "role": "member", "username": None, "full_name": "Bob B"},
    ]
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    members = await repo.list_room_members(1)
    assert [(m.user_id, m.role, m.display_name) for m in members] == [
        (1, MemberRole.OWNER, "@alice"),
        (2, MemberRole.MEMBER, "Bob B"),
    ]


@pytest.mark.asyncio
async def test_update_room_field_rejects_unknown_field():
    db = DummyDB()
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        await repo.update_room_field(1, "invite_code", "x")
    await repo.update_room_field(1, "name", "Flat 4")
    assert db.executed[0][1] == ("Flat 4", 1)


@pytest.mark.asyncio
async def test_join_room_by_unknown_code():
    repo = BudgetRoomRepository(DummyDB())  # type: ignore[arg-type]
    assert await repo.join_room_by_invite_code("deadbeef", 1) is None


@pytest.mark.asyncio
async def test_join_room_adds_member():
    db = DummyDB()
    db.rows["rooms"] = [{"id": 3, "name": "Flat", "created_by": 1, "invite_code": "deadbeef"}]
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    room = await repo.join_room_by_invite_code(" deadbeef ", 2)
    assert room is not None and room.id == 3
    assert db.executed[0][1] == (3, 2, "member")


@pytest.mark.asyncio
async def test_create_shared_expense_custom_rows():
    db = DummyDB()
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    expense_id = await repo.create_shared_expense(
        room_id=1,
        amount=Decimal("50"),
        category="Food",
        description=None,
        day=date(2024, 5, 1),
        paid_by=1,
        split_type=SplitType.CUSTOM,
        splits={1: Decimal("20"), 2: Decimal("30")},
    )
    assert expense_id == 11
    assert db.conn.split_rows == [(11, 1, Decimal("20")), (11, 2, Decimal("30"))]


@pytest.mark.asyncio
async def test_create_shared_expense_equal_has_no_rows():
    db = DummyDB()
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]
    await repo.create_shared_expense(1, Decimal("50"), "Food", None, date(2024, 5, 1), 1, SplitType.EQUAL)
    assert db.conn.split_rows == []


@pytest.mark.asyncio
async def test_list_transactions_merges_expenses_and_income():
    db = DummyDB()
    db.rows["expenses"] = [
        {"id": 1, "date": date(2024, 5, 2), "category": "Food", "description": "", "amount": Decimal("12.50")},
    ]
    db.rows["income"] = [
        {"id": 1, "date": date(2024, 5, 3), "income_type": "monthly_salary", "description": None, "amount": "3000"},
    ]
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    transactions = await repo.list_transactions(7)
    assert [(t.category, t.amount, t.is_income) for t in transactions] == [
        ("Monthly salary", Decimal("3000"), True),
        ("Food", Decimal("-12.50"), False),
    ]
    assert transactions[0].income_type is IncomeType.MONTHLY_SALARY


@pytest.mark.asyncio
async def test_list_alert_acks():
    db = DummyDB()
    db.rows["budget_alert_acks"] = [{"budget_id": 1, "threshold": 50}, {"budget_id": 1, "threshold": 90}]
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]
    assert await repo.list_alert_acks(7, "2024-05") == {(1, 50), (1, 90)}


def test_global_repository_not_initialised(monkeypatch):
    monkeypatch.setattr(repo_module, "_global_repo", None)
    with pytest.raises(RuntimeError):
        get_global_repository()


@pytest.mark.asyncio
async def test_delete_expense_only_for_its_owner():
    db = DummyDB()
    db.owned[("expenses", 5)] = 7
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    assert await repo.delete_expense(8, 5) is False
    assert await repo.delete_expense(7, 5) is True
    assert await repo.delete_expense(7, 6) is False


@pytest.mark.asyncio
async def test_delete_income_checks_owner():
    db = DummyDB()
    db.owned[("income", 2)] = 7
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]
    assert await repo.delete_income(7, 2) is True
    assert await repo.delete_income(9, 2) is False


@pytest.mark.asyncio
async def test_update_expense_and_income():
    db = DummyDB()
    db.owned[("expenses", 5)] = 7
    db.owned[("income", 2)] = 7
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    assert await repo.update_expense(7, 5, Decimal("-20"), "", None, date(2024, 5, 2)) is True
    _, args = db.fetchval_calls[-1]
    assert args == (5, 7, Decimal("20"), "Other", "", date(2024, 5, 2))

    assert await repo.update_income(7, 2, Decimal("100"), IncomeType.ONE_TIME, "gift", date(2024, 5, 3)) is True
    assert db.fetchval_calls[-1][1][3] == "one_time"
    assert await repo.update_income(8, 2, Decimal("100"), IncomeType.ONE_TIME, None, date(2024, 5, 3)) is False


@pytest.mark.asyncio
async def test_wipe_user_data_keeps_foreign_rooms():
    db = DummyDB()
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    await repo.wipe_user_data(7)

    assert [query for query, _ in db.conn.executed] == [
        "DELETE FROM expenses WHERE user_id = $1",
        "DELETE FROM income WHERE user_id = $1",
        "DELETE FROM budgets WHERE user_id = $1",
        "DELETE FROM rooms WHERE created_by = $1",
    ]
    assert all(args == (7,) for _, args in db.conn.executed)


@pytest.mark.asyncio
async def test_get_budget_scoped_to_user():
    db = DummyDB()
    db.rows["budgets"] = [{"id": 1, "user_id": 7, "category": "Food", "budget_limit": "100"}]
    repo = BudgetRoomRepository(db)  # type: ignore[arg-type]

    budget = await repo.get_budget(7, 1)
    assert budget is not None and budget.budget_limit == Decimal("100")
    query, args = db.fetchrow_calls[0]
    assert "user_id = $2" in query
    assert args == (1, 7)


@pytest.mark.asyncio
async def test_get_budget_missing():
    repo = BudgetRoomRepository(DummyDB())  # type: ignore[arg-type]
    assert await repo.get_budget(7, 404) is None
