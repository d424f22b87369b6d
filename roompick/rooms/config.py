from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class StoreConfig:
    redis_url: str = os.getenv("REDIS_URL", "")
    ttl_seconds: int = 60 * 60 * 24  # 24 hours
    key_prefix: str = "room:"


DEFAULT_STORE_CONFIG = StoreConfig()
