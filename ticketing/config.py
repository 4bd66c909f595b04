import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./ticketing.db"
    signing_secret: Optional[str] = None
    session_jwt_secret: Optional[str] = None
    session_jwt_audience: str = "authenticated"
    redis_url: Optional[str] = None
    check_in_rate_limit: int = 60  # scans per minute per checker
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


def load_settings() -> Settings:
    return Settings(
        database_url=os.environ.get("DATABASE_URL", "sqlite:///./ticketing.db"),
        signing_secret=os.environ.get("TICKET_SIGNING_SECRET") or None,
        session_jwt_secret=os.environ.get("SESSION_JWT_SECRET") or None,
        session_jwt_audience=os.environ.get("SESSION_JWT_AUDIENCE", "authenticated"),
        redis_url=os.environ.get("REDIS_URL") or None,
        check_in_rate_limit=int(os.environ.get("CHECK_IN_RATE_LIMIT", "60")),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
