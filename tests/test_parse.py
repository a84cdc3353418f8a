from datetime import date, datetime
from decimal import Decimal

import pytest

from budgetroom.db.models import IncomeType, SplitType
from budgetroom.utils.parse import (
    command_args,
    parse_id,
    parse_income_type,
    parse_share_tokens,
    parse_split_type,
    to_date_only,
)

TODAY = date(2024, 5, 15)


def test_to_date_only():
    assert to_date_only("2024-05-01", TODAY) == date(2024, 5, 1)
    assert to_date_only("2024-05-01T22:10:00Z", TODAY) == date(2024, 5, 1)
    assert to_date_only(datetime(2024, 1, 2, 3, 4), TODAY) == date(2024, 1, 2)
    assert to_date_only(None, TODAY) == TODAY
    assert to_date_only("2024-02-30", TODAY) == TODAY
    assert to_date_only("yesterday", TODAY) == TODAY


def test_command_args():
    assert command_args("/expense 12 | Food | lunch", "expense") == ["12", "Food", "lunch"]
    assert command_args("/expense@BudgetRoomBot 5", "expense") == ["5"]
    assert command_args("/expense", "expense") == []
    with pytest.raises(ValueError):
        command_args("/income 5", "expense")


def test_parse_split_type():
    assert parse_split_type(" Equal ") is SplitType.EQUAL
    with pytest.raises(ValueError):
        parse_split_type("half")


def test_parse_share_tokens():
    assert parse_share_tokens("@bob=20 carol=10,5") == [("bob", Decimal("20.00")), ("carol", Decimal("10.50"))]
    with pytest.raises(ValueError):
        parse_share_tokens("@bob:20")


def test_parse_income_type():
    assert parse_income_type(None) is IncomeType.ONE_TIME
    assert parse_income_type("Monthly") is IncomeType.MONTHLY_SALARY
    assert parse_income_type("yearly") is IncomeType.YEARLY_SALARY
    with pytest.raises(ValueError):
        parse_income_type("weekly")


def test_parse_id():
    assert parse_id("42") == 42
    assert parse_id("#7") == 7
    for text in ("abc", "-1", "99999999999999999999"):
        with pytest.raises(ValueError):
            parse_id(text)
