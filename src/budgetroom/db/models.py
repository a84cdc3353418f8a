from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class SplitType(str, Enum):
    FULL = "full"
    EQUAL = "equal"
    CUSTOM = "custom"


class MemberRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class IncomeType(str, Enum):
    YEARLY_SALARY = "yearly_salary"
    MONTHLY_SALARY = "monthly_salary"
    ONE_TIME = "one_time"


@dataclass(slots=True)
class User:
    id: int
    tg_id: int
    username: Optional[str]
    full_name: Optional[str]


@dataclass(slots=True)
class Room:
    id: int
    name: str
    created_by: int
    invite_code: str
    created_at: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class RoomMember:
    room_id: int
    user_id: int
    role: MemberRole = MemberRole.MEMBER
    display_name: Optional[str] = None


@dataclass(slots=True, frozen=True)
class SharedExpense:
    id: int
    room_id: int
    amount: Decimal
    paid_by: int
    split_type: SplitType
    category: str = "Other"
    description: Optional[str] = None
    date: Optional[date] = None


@dataclass(slots=True, frozen=True)
class ExpenseSplit:
    shared_expense_id: int
    user_id: int
    amount: Decimal


@dataclass(slots=True, frozen=True)
class Settlement:
    room_id: int
    from_user_id: int
    to_user_id: int
    amount: Decimal
    id: Optional[int] = None


@dataclass(slots=True)
class RoomBudget:
    id: int
    room_id: int
    category: str
    budget_limit: Decimal


@dataclass(slots=True)
class Budget:
    id: int
    user_id: int
    category: str
    budget_limit: Decimal


@dataclass(slots=True)
class Transaction:
    id: int
    date: date
    category: str
    description: str
    amount: Decimal
    is_income: bool
    income_type: Optional[IncomeType] = None
