import pytest

import config


def _fresh_settings(monkeypatch, tmp_path, **env) -> config.Settings:
    monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path))
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    config.get_settings.cache_clear()
    try:
        return config.get_settings()
    finally:
        config.get_settings.cache_clear()


def test_defaults_point_into_data_dir(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("LEDGER_DATABASE_URL", raising=False)
    monkeypatch.delenv("LEDGER_TOP_CATEGORIES", raising=False)
    monkeypatch.delenv("LEDGER_SCHEDULER_HOUR", raising=False)
    monkeypatch.delenv("LEDGER_TIMEZONE", raising=False)

    settings = _fresh_settings(monkeypatch, tmp_path)

    assert settings.database_url == f"sqlite:///{tmp_path.resolve() / 'ledger.db'}"
    assert settings.timezone == "Europe/Berlin"
    assert settings.top_categories == 7
    assert settings.scheduler_hour == 0


def test_overrides_from_environment(monkeypatch, tmp_path) -> None:
    settings = _fresh_settings(
        monkeypatch,
        tmp_path,
        LEDGER_DATABASE_URL="sqlite://",
        LEDGER_TOP_CATEGORIES="3",
        LEDGER_SCHEDULER_HOUR="4",
        LEDGER_TIMEZONE="UTC",
    )

    assert settings.database_url == "sqlite://"
    assert settings.top_categories == 3
    assert settings.scheduler_hour == 4
    assert settings.timezone == "UTC"


@pytest.mark.parametrize(
    "name, value",
    [
        ("LEDGER_TOP_CATEGORIES", "0"),
        ("LEDGER_TOP_CATEGORIES", "many"),
        ("LEDGER_SCHEDULER_HOUR", "24"),
    ],
)
def test_invalid_integers_raise(monkeypatch, tmp_path, name, value) -> None:
    with pytest.raises(ValueError):
        _fresh_settings(monkeypatch, tmp_path, **{name: value})
