from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class CandidateSourceConfig:
    api_key: str = os.getenv("HOTPEPPER_API_KEY", "")
    base_url: str = "https://webservice.recruit.co.jp/hotpepper/gourmet/v1/"
    timeout: float = 10.0
    page_size: int = 100


DEFAULT_CANDIDATE_SOURCE_CONFIG = CandidateSourceConfig()
