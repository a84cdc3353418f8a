from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from budgetroom.db.models import IncomeType, SplitType
from budgetroom.utils.money import parse_amount


ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SHARE_TOKEN = re.compile(r"^@?(?P<username>[A-Za-z0-9_]{1,64})=(?P<amount>[\d.,]+)$")

INCOME_TYPE_ALIASES = {
    "yearly": IncomeType.YEARLY_SALARY,
    "yearly_salary": IncomeType.YEARLY_SALARY,
    "monthly": IncomeType.MONTHLY_SALARY,
    "monthly_salary": IncomeType.MONTHLY_SALARY,
    "salary": IncomeType.MONTHLY_SALARY,
    "one_time": IncomeType.ONE_TIME,
    "one-time": IncomeType.ONE_TIME,
    "once": IncomeType.ONE_TIME,
}

INCOME_TYPE_LABELS = {
    IncomeType.YEARLY_SALARY: "Yearly salary",
    IncomeType.MONTHLY_SALARY: "Monthly salary",
    IncomeType.ONE_TIME: "One-time",
}


def to_date_only(value: Union[str, date, datetime, None], today: date) -> date:
    """Normalize ``value`` to a calendar date, falling back to ``today``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    if not text:
        return today
    if ISO_DATE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return today
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return today


def command_args(text: str, command: str) -> list[str]:
    body = text.split(maxsplit=1)
    if not body or not body[0].lstrip("/").split("@")[0] == command:
        raise ValueError(f"Expected /{command}")
    if len(body) == 1:
        return []
    return [part.strip() for part in body[1].split("|")]


def parse_split_type(text: str) -> SplitType:
    try:
        return SplitType(text.strip().lower())
    except ValueError as exc:
        raise ValueError("Split must be one of: full, equal, custom") from exc


def parse_share_tokens(text: str) -> list[tuple[str, Decimal]]:
    shares: list[tuple[str, Decimal]] = []
    for token in text.split():
        match = SHARE_TOKEN.match(token)
        if not match:
            raise ValueError(f"Cannot read share '{token}', expected @user=amount")
        shares.append((match.group("username"), parse_amount(match.group("amount"))))
    return shares


def parse_income_type(text: Optional[str]) -> IncomeType:
    key = (text or "one_time").strip().lower()
    try:
        return INCOME_TYPE_ALIASES[key]
    except KeyError as exc:
        raise ValueError("Income type must be yearly, monthly or one-time") from exc


# BIGINT primary keys
MAX_ID = 2**63 - 1


def parse_id(text: str) -> int:
    token = text.strip().lstrip("#")
    if not token.isdigit() or int(token) > MAX_ID:
        raise ValueError(f"Not a valid id: {text}")
    return int(token)
