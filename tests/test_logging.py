import pytest
import structlog

from budgetroom.logging import _sql_filter


def test_sql_events_dropped_unless_enabled():
    event = {"logger": "sql", "event": "sql.fetch"}
    with pytest.raises(structlog.DropEvent):
        _sql_filter(False)(None, "info", dict(event))
    assert _sql_filter(True)(None, "info", dict(event)) == event


def test_other_events_pass():
    event = {"logger": "budgetroom.scheduler", "event": "alerts.sent"}
    assert _sql_filter(False)(None, "info", dict(event)) == event
