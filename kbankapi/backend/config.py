from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


class Settings:
    """Runtime settings shared across the backend application."""

    def __init__(self, **overrides) -> None:
        self.title: str = os.getenv("APP_TITLE", "K PLUS Gateway")
        self.version: str = "1.0.0"
        self.port: int = int(os.getenv("PORT", "64436"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.cors_origins: List[str] = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()
        ]
        self.state_file: Path = Path(os.getenv("STATE_FILE", "state.json"))
        self.api_base_url: str = os.getenv("KPLUS_API_URL", "https://kplus.kasikornbank.com/api")
        self.account_no: Optional[str] = os.getenv("ACCOUNT_NO")
        self.account_type: str = os.getenv("ACCOUNT_TYPE", "SA")
        self.pin: Optional[str] = os.getenv("PIN")
        # 0 refetches the bank info table on every request.
        self.bank_info_cache_ttl: float = float(os.getenv("BANK_INFO_CACHE_TTL", "0"))
        self.session_acquire_timeout: Optional[float] = _optional_float("SESSION_ACQUIRE_TIMEOUT")
        self.session_call_timeout: Optional[float] = _optional_float("SESSION_CALL_TIMEOUT")
        self.activity_table_size: int = int(os.getenv("ACTIVITY_TABLE_SIZE", "1000"))
        self.transfer_table_size: int = int(os.getenv("TRANSFER_TABLE_SIZE", "100"))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting '{key}'")
            setattr(self, key, value)


settings = Settings()
