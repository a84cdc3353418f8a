from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

import asyncpg

from budgetroom.db.models import (
    Budget,
    ExpenseSplit,
    IncomeType,
    MemberRole,
    Room,
    RoomBudget,
    RoomMember,
    Settlement,
    SharedExpense,
    SplitType,
    Transaction,
)
from budgetroom.logging import get_logger, sql_logger
from budgetroom.utils.parse import INCOME_TYPE_LABELS


class Database:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._log = get_logger(__name__)

    async def connect(self) -> None:
        if self._pool is None:
            # asyncpg expects a plain postgresql:// scheme
            dsn = self._dsn.replace("+asyncpg", "")
            self._pool = await asyncpg.create_pool(dsn)
            self._log.info("db.pool.created")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._log.info("db.pool.closed")

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetch", query=query, args=args)
        return await self._pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetchrow", query=query, args=args)
        return await self._pool.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetchval", query=query, args=args)
        return await self._pool.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.execute", query=query, args=args)
        return await self._pool.execute(query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        await self._ensure_pool()
        assert self._pool
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                sql_logger.info("sql.transaction")
                yield conn

    async def _ensure_pool(self) -> None:
        if self._pool is None:
            await self.connect()


def _room(row: Mapping[str, Any]) -> Room:
    return Room(
        id=row["id"],
        name=row["name"],
        created_by=row["created_by"],
        invite_code=row["invite_code"],
        created_at=row.get("created_at"),
    )


def _display_name(row: Mapping[str, Any]) -> Optional[str]:
    if row.get("username"):
        return f"@{row['username']}"
    return row.get("full_name")


def _shared_expense(row: Mapping[str, Any]) -> SharedExpense:
    return SharedExpense(
        id=row["id"],
        room_id=row["room_id"],
        amount=Decimal(row["amount"]),
        paid_by=row["paid_by"],
        split_type=SplitType(row["split_type"]),
        category=row.get("category") or "Other",
        description=row.get("description"),
        date=row.get("date"),
    )


class BudgetRoomRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    # users

    async def ensure_user(self, tg_id: int, username: Optional[str], full_name: Optional[str]) -> int:
        row = await self.db.fetchrow(
            """
            INSERT INTO users (tg_id, username, full_name)
            VALUES ($1, $2, $3)
            ON CONFLICT (tg_id) DO UPDATE
                SET username = EXCLUDED.username,
                    full_name = EXCLUDED.full_name
            RETURNING id
            """,
            tg_id,
            username,
            full_name,
        )
        assert row is not None
        return int(row["id"])

    async def get_user_by_username(self, username: str) -> asyncpg.Record | None:
        clean = username.lstrip("@")
        return await self.db.fetchrow("SELECT * FROM users WHERE username = $1", clean)

    async def get_user(self, user_id: int) -> asyncpg.Record | None:
        return await self.db.fetchrow("SELECT * FROM users WHERE id = $1", user_id)

    # rooms

    async def create_room(self, user_id: int, name: str) -> Room:
        async with self.db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO rooms (name, created_by, invite_code)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                name,
                user_id,
                secrets.token_hex(4),
            )
            assert row is not None
            await conn.execute(
                "INSERT INTO room_members (room_id, user_id, role) VALUES ($1, $2, 'owner')",
                row["id"],
                user_id,
            )
        return _room(row)

    async def get_room(self, room_id: int) -> Room | None:
        row = await self.db.fetchrow("SELECT * FROM rooms WHERE id = $1", room_id)
        return _room(row) if row else None

    async def list_rooms_for_user(self, user_id: int) -> list[Room]:
        rows = await self.db.fetch(
            """
            SELECT r.*
            FROM rooms r
            WHERE r.created_by = $1
               OR EXISTS (SELECT 1 FROM room_members m WHERE m.room_id = r.id AND m.user_id = $1)
            ORDER BY r.created_at DESC
            """,
            user_id,
        )
        return [_room(row) for row in rows]

    async def update_room_field(self, room_id: int, field: str, value: Any) -> None:
        if field not in {"name"}:
            raise ValueError("Field cannot be updated")
        await self.db.execute(f"UPDATE rooms SET {field} = $1 WHERE id = $2", value, room_id)

    async def delete_room(self, room_id: int) -> None:
        await self.db.execute("DELETE FROM rooms WHERE id = $1", room_id)

    async def join_room_by_invite_code(self, invite_code: str, user_id: int) -> Room | None:
        row = await self.db.fetchrow("SELECT * FROM rooms WHERE invite_code = $1", invite_code.strip())
        if row is None:
            return None
        await self.add_room_member(row["id"], user_id)
        return _room(row)

    # members

    async def list_room_members(self, room_id: int) -> list[RoomMember]:
        rows = await self.db.fetch(
            """
            SELECT m.room_id, m.user_id, m.role, u.username, u.full_name
            FROM room_members m
            JOIN users u ON u.id = m.user_id
            WHERE m.room_id = $1
            ORDER BY m.joined_at, m.user_id
            """,
            room_id,
        )
        return [
            RoomMember(
                room_id=row["room_id"],
                user_id=row["user_id"],
                role=MemberRole(row["role"]),
                display_name=_display_name(row),
            )
            for row in rows
        ]

    async def add_room_member(self, room_id: int, user_id: int, role: MemberRole = MemberRole.MEMBER) -> None:
        await self.db.execute(
            """
            INSERT INTO room_members (room_id, user_id, role)
            VALUES ($1, $2, $3)
            ON CONFLICT (room_id, user_id) DO NOTHING
            """,
            room_id,
            user_id,
            role.value,
        )

    async def remove_room_member(self, room_id: int, user_id: int) -> None:
        await self.db.execute(
            "DELETE FROM room_members WHERE room_id = $1 AND user_id = $2",
            room_id,
            user_id,
        )

    # shared expenses

    async def create_shared_expense(
        self,
        room_id: int,
        amount: Decimal,
        category: str,
        description: Optional[str],
        day: date,
        paid_by: int,
        split_type: SplitType,
        splits: Optional[Mapping[int, Decimal]] = None,
    ) -> int:
        async with self.db.transaction() as conn:
            expense_id = await conn.fetchval(
                """
                INSERT INTO shared_expenses (room_id, amount, category, description, date, paid_by, split_type)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING id
                """,
                room_id,
                abs(amount),
                category or "Other",
                description,
                day,
                paid_by,
                split_type.value,
            )
            if split_type == SplitType.CUSTOM and splits:
                await conn.executemany(
                    """
                    INSERT INTO expense_splits (shared_expense_id, user_id, amount)
                    VALUES ($1, $2, $3)
                    """,
                    [(expense_id, user_id, abs(share)) for user_id, share in splits.items()],
                )
        return int(expense_id)

    async def get_shared_expense(self, expense_id: int) -> SharedExpense | None:
        row = await self.db.fetchrow("SELECT * FROM shared_expenses WHERE id = $1", expense_id)
        return _shared_expense(row) if row else None

    async def list_shared_expenses(self, room_id: int) -> list[SharedExpense]:
        rows = await self.db.fetch(
            """
            SELECT * FROM shared_expenses
            WHERE room_id = $1
            ORDER BY date DESC, created_at DESC
            """,
            room_id,
        )
        return [_shared_expense(row) for row in rows]

    async def list_room_splits(self, room_id: int) -> list[ExpenseSplit]:
        rows = await self.db.fetch(
            """
            SELECT s.shared_expense_id, s.user_id, s.amount
            FROM expense_splits s
            JOIN shared_expenses e ON e.id = s.shared_expense_id
            WHERE e.room_id = $1
            """,
            room_id,
        )
        return [
            ExpenseSplit(
                shared_expense_id=row["shared_expense_id"],
                user_id=row["user_id"],
                amount=Decimal(row["amount"]),
            )
            for row in rows
        ]

    async def delete_shared_expense(self, expense_id: int) -> None:
        await self.db.execute("DELETE FROM shared_expenses WHERE id = $1", expense_id)

    # settlements

    async def create_settlement(self, room_id: int, from_user_id: int, to_user_id: int, amount: Decimal) -> Settlement:
        row = await self.db.fetchrow(
            """
            INSERT INTO settlements (room_id, from_user_id, to_user_id, amount)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            room_id,
            from_user_id,
            to_user_id,
            abs(amount),
        )
        assert row is not None
        return Settlement(
            id=row["id"],
            room_id=row["room_id"],
            from_user_id=row["from_user_id"],
            to_user_id=row["to_user_id"],
            amount=Decimal(row["amount"]),
        )

    async def list_settlements(self, room_id: int) -> list[Settlement]:
        rows = await self.db.fetch(
            "SELECT * FROM settlements WHERE room_id = $1 ORDER BY created_at",
            room_id,
        )
        return [
            Settlement(
                id=row["id"],
                room_id=row["room_id"],
                from_user_id=row["from_user_id"],
                to_user_id=row["to_user_id"],
                amount=Decimal(row["amount"]),
            )
            for row in rows
        ]

    # room budgets

    async def create_room_budget(self, room_id: int, category: str, budget_limit: Decimal) -> RoomBudget:
        row = await self.db.fetchrow(
            """
            INSERT INTO room_budgets (room_id, category, budget_limit)
            VALUES ($1, $2, $3)
            ON CONFLICT (room_id, category) DO UPDATE SET budget_limit = EXCLUDED.budget_limit
            RETURNING *
            """,
            room_id,
            category,
            budget_limit,
        )
        assert row is not None
        return RoomBudget(
            id=row["id"],
            room_id=row["room_id"],
            category=row["category"],
            budget_limit=Decimal(row["budget_limit"]),
        )

    async def list_room_budgets(self, room_id: int) -> list[RoomBudget]:
        rows = await self.db.fetch(
            "SELECT * FROM room_budgets WHERE room_id = $1 ORDER BY category",
            room_id,
        )
        return [
            RoomBudget(
                id=row["id"],
                room_id=row["room_id"],
                category=row["category"],
                budget_limit=Decimal(row["budget_limit"]),
            )
            for row in rows
        ]

    # personal transactions

    async def add_expense(
        self,
        user_id: int,
        amount: Decimal,
        category: str,
        description: Optional[str],
        day: date,
    ) -> int:
        expense_id = await self.db.fetchval(
            """
            INSERT INTO expenses (user_id, amount, category, description, date)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            user_id,
            abs(amount),
            category or "Other",
            description or "",
            day,
        )
        return int(expense_id)

    async def add_income(
        self,
        user_id: int,
        amount: Decimal,
        income_type: IncomeType,
        description: Optional[str],
        day: date,
    ) -> int:
        income_id = await self.db.fetchval(
            """
            INSERT INTO income (user_id, amount, income_type, description, date)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            user_id,
            abs(amount),
            income_type.value,
            description or "",
            day,
        )
        return int(income_id)

    async def list_transactions(self, user_id: int) -> list[Transaction]:
        expense_rows = await self.db.fetch(
            "SELECT * FROM expenses WHERE user_id = $1 ORDER BY date DESC",
            user_id,
        )
        income_rows = await self.db.fetch(
            "SELECT * FROM income WHERE user_id = $1 ORDER BY date DESC",
            user_id,
        )
        transactions = [
            Transaction(
                id=row["id"],
                date=row["date"],
                category=row.get("category") or "Other",
                description=row.get("description") or "",
                amount=-abs(Decimal(row["amount"])),
                is_income=False,
            )
            for row in expense_rows
        ]
        for row in income_rows:
            income_type = IncomeType(row["income_type"])
            transactions.append(
                Transaction(
                    id=row["id"],
                    date=row["date"],
                    category=INCOME_TYPE_LABELS[income_type],
                    description=row.get("description") or "",
                    amount=abs(Decimal(row["amount"])),
                    is_income=True,
                    income_type=income_type,
                )
            )
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def update_expense(
        self,
        user_id: int,
        expense_id: int,
        amount: Decimal,
        category: str,
        description: Optional[str],
        day: date,
    ) -> bool:
        updated = await self.db.fetchval(
            """
            UPDATE expenses
            SET amount = $3, category = $4, description = $5, date = $6
            WHERE id = $1 AND user_id = $2
            RETURNING id
            """,
            expense_id,
            user_id,
            abs(amount),
            category or "Other",
            description or "",
            day,
        )
        return updated is not None

    async def delete_expense(self, user_id: int, expense_id: int) -> bool:
        deleted = await self.db.fetchval(
            "DELETE FROM expenses WHERE id = $1 AND user_id = $2 RETURNING id",
            expense_id,
            user_id,
        )
        return deleted is not None

    async def update_income(
        self,
        user_id: int,
        income_id: int,
        amount: Decimal,
        income_type: IncomeType,
        description: Optional[str],
        day: date,
    ) -> bool:
        updated = await self.db.fetchval(
            """
            UPDATE income
            SET amount = $3, income_type = $4, description = $5, date = $6
            WHERE id = $1 AND user_id = $2
            RETURNING id
            """,
            income_id,
            user_id,
            abs(amount),
            income_type.value,
            description or "",
            day,
        )
        return updated is not None

    async def delete_income(self, user_id: int, income_id: int) -> bool:
        deleted = await self.db.fetchval(
            "DELETE FROM income WHERE id = $1 AND user_id = $2 RETURNING id",
            income_id,
            user_id,
        )
        return deleted is not None

    async def wipe_user_data(self, user_id: int) -> None:
        """Delete personal expenses, income, budgets and the rooms the user
        created. Memberships in other people's rooms are kept."""
        async with self.db.transaction() as conn:
            await conn.execute("DELETE FROM expenses WHERE user_id = $1", user_id)
            await conn.execute("DELETE FROM income WHERE user_id = $1", user_id)
            await conn.execute("DELETE FROM budgets WHERE user_id = $1", user_id)
            await conn.execute("DELETE FROM rooms WHERE created_by = $1", user_id)

    # budgets and alerts

    async def upsert_budget(self, user_id: int, category: str, budget_limit: Decimal) -> Budget:
        row = await self.db.fetchrow(
            """
            INSERT INTO budgets (user_id, category, budget_limit)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id, category) DO UPDATE SET budget_limit = EXCLUDED.budget_limit
            RETURNING *
            """,
            user_id,
            category,
            budget_limit,
        )
        assert row is not None
        return Budget(
            id=row["id"],
            user_id=row["user_id"],
            category=row["category"],
            budget_limit=Decimal(row["budget_limit"]),
        )

    async def list_budgets(self, user_id: int) -> list[Budget]:
        rows = await self.db.fetch(
            "SELECT * FROM budgets WHERE user_id = $1 ORDER BY created_at",
            user_id,
        )
        return [
            Budget(
                id=row["id"],
                user_id=row["user_id"],
                category=row["category"],
                budget_limit=Decimal(row["budget_limit"]),
            )
            for row in rows
        ]

    async def get_budget(self, user_id: int, budget_id: int) -> Budget | None:
        row = await self.db.fetchrow(
            "SELECT * FROM budgets WHERE id = $1 AND user_id = $2",
            budget_id,
            user_id,
        )
        if row is None:
            return None
        return Budget(
            id=row["id"],
            user_id=row["user_id"],
            category=row["category"],
            budget_limit=Decimal(row["budget_limit"]),
        )

    async def list_budget_owners(self) -> list[asyncpg.Record]:
        return await self.db.fetch(
            """
            SELECT DISTINCT u.id, u.tg_id
            FROM budgets b
            JOIN users u ON u.id = b.user_id
            """
        )

    async def list_alert_acks(self, user_id: int, period: str) -> set[tuple[int, int]]:
        rows = await self.db.fetch(
            "SELECT budget_id, threshold FROM budget_alert_acks WHERE user_id = $1 AND period = $2",
            user_id,
            period,
        )
        return {(row["budget_id"], row["threshold"]) for row in rows}

    async def acknowledge_alerts(self, user_id: int, acks: Iterable[tuple[int, int]], period: str) -> None:
        for budget_id, threshold in acks:
            await self.db.execute(
                """
                INSERT INTO budget_alert_acks (user_id, budget_id, threshold, period)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT DO NOTHING
                """,
                user_id,
                budget_id,
                threshold,
                period,
            )


_global_repo: BudgetRoomRepository | None = None


def set_global_repository(repo: BudgetRoomRepository) -> None:
    global _global_repo
    _global_repo = repo


def get_global_repository() -> BudgetRoomRepository:
    if _global_repo is None:
        raise RuntimeError("Repository is not initialised")
    return _global_repo
