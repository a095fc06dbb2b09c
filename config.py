import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        top_categories: int,
        scheduler_hour: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.top_categories = top_categories
        self.scheduler_hour = scheduler_hour


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _int_env(
    name: str, default: int, minimum: int, maximum: Optional[int] = None
) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum or (maximum is not None and value > maximum):
        raise ValueError(f"{name} out of range: {value}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    return Settings(
        database_url=os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}"),
        timezone=os.getenv("LEDGER_TIMEZONE", "Europe/Berlin"),
        top_categories=_int_env("LEDGER_TOP_CATEGORIES", 7, minimum=1),
        scheduler_hour=_int_env("LEDGER_SCHEDULER_HOUR", 0, minimum=0, maximum=23),
    )
