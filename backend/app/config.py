# Settings: read from the environment, with an optional .env at the project root.

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_project_root = Path(__file__).resolve().parents[2]

REALTIME_API_BASE = "https://api-open.data.gov.sg/v2/real-time/api"
DATASET_API_BASE = "https://api-open.data.gov.sg/v1/public/api"
DENGUE_DATASET_ID = "d_dbfabf16158d1b0e1c420627c0819168"


def _load_dotenv() -> None:
    """Load .env from project root or cwd without overriding real env vars."""
    for path in (_project_root / ".env", Path.cwd() / ".env"):
        if path.is_file():
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        k, _, v = line.partition("=")
                        v = v.strip().strip('"').strip("'")
                        os.environ.setdefault(k.strip(), v)
            break


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    realtime_api_base: str = REALTIME_API_BASE
    dataset_api_base: str = DATASET_API_BASE
    dengue_dataset_id: str = DENGUE_DATASET_ID
    timeout: float = 8.0
    retries: int = 1
    dengue_radius_km: float = 5.0
    mock_flags: tuple[str, ...] = ()
    cors_origins: tuple[str, ...] = ("*",)


def load_settings() -> Settings:
    _load_dotenv()

    raw_flags = os.getenv("HAZARD_MOCK_FLAGS", "")
    mock_flags = tuple(flag.strip().lower() for flag in raw_flags.split(",") if flag.strip())

    raw_origins = os.getenv("CORS_ORIGINS", "*")
    cors_origins = tuple(origin.strip() for origin in raw_origins.split(",") if origin.strip())

    return Settings(
        api_key=(os.getenv("DATA_GOV_SG_API_KEY") or "").strip(),
        realtime_api_base=(os.getenv("REALTIME_API_BASE") or REALTIME_API_BASE).rstrip("/"),
        dataset_api_base=(os.getenv("DATASET_API_BASE") or DATASET_API_BASE).rstrip("/"),
        dengue_dataset_id=(os.getenv("DENGUE_DATASET_ID") or DENGUE_DATASET_ID).strip(),
        timeout=_env_float("FEED_TIMEOUT_SECONDS", 8.0),
        retries=max(0, _env_int("FEED_RETRIES", 1)),
        dengue_radius_km=_env_float("DENGUE_RADIUS_KM", 5.0),
        mock_flags=mock_flags,
        cors_origins=cors_origins or ("*",),
    )
