import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis

from .config import Settings, get_settings
from .errors import ErrorKind, TicketError
from .security import TicketCodec

logger = logging.getLogger(__name__)


def build_codec(settings: Settings) -> TicketCodec:
    if not settings.signing_secret:
        logger.error("TICKET_SIGNING_SECRET is not configured")
        raise TicketError(ErrorKind.INTERNAL, "signing secret missing")
    return TicketCodec(settings.signing_secret)


def get_codec(settings: Settings = Depends(get_settings)) -> TicketCodec:
    return build_codec(settings)


@lru_cache()
def _redis_client(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True)


def get_redis(settings: Settings = Depends(get_settings)) -> Optional[Redis]:
    """Shared Redis client, or None when rate limiting is not configured."""
    if not settings.redis_url:
        return None
    return _redis_client(settings.redis_url)
