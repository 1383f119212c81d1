import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: str = "matchmaking"
    store_backend: str = "memory"
    match_score_threshold: int = 50
    top_matches_limit: int = 10
    strict_status_transitions: bool = False
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls, env: Mapping[str, str] = None) -> "Settings":
        env = os.environ if env is None else env
        database_url = env.get("DATABASE_URL") or None
        backend = (env.get("STORE_BACKEND") or ("mongo" if database_url else "memory")).lower()
        if backend not in ("mongo", "memory"):
            raise ValueError(f"STORE_BACKEND must be 'mongo' or 'memory', got {backend!r}")
        if backend == "mongo" and not database_url:
            raise ValueError("STORE_BACKEND=mongo requires DATABASE_URL")

        threshold = _as_int("MATCH_SCORE_THRESHOLD", env.get("MATCH_SCORE_THRESHOLD"), 50)
        if not 0 <= threshold <= 100:
            raise ValueError("MATCH_SCORE_THRESHOLD must be between 0 and 100")
        limit = _as_int("TOP_MATCHES_LIMIT", env.get("TOP_MATCHES_LIMIT"), 10)
        if limit < 1:
            raise ValueError("TOP_MATCHES_LIMIT must be positive")

        return cls(
            database_url=database_url,
            database_name=env.get("DATABASE_NAME") or "matchmaking",
            store_backend=backend,
            match_score_threshold=threshold,
            top_matches_limit=limit,
            strict_status_transitions=_as_bool(env.get("STRICT_STATUS_TRANSITIONS")),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            port=_as_int("PORT", env.get("PORT"), 8000),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()
