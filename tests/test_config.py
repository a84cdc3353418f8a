from budgetroom.config import Settings


def test_settings_defaults(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/budgetroom")
    monkeypatch.delenv("TZ", raising=False)
    monkeypatch.setenv("CURRENCY", " eur ")

    settings = Settings()  # type: ignore[call-arg]

    assert settings.tz == "UTC"
    assert settings.currency == "EUR"
    assert settings.alert_check_minutes == 15
    assert settings.log_sql is False
    assert settings.zoneinfo.key == "UTC"
