"""
Server-side sessions for browser clients.

Sessions live in Redis under "sess:<id>" with a TTL that depends on the
user's roles (organizers get a shorter one). When Redis is disabled or
unreachable they are kept in a process-local dict instead, so a single
instance keeps working without Redis.
"""

import json
import secrets
import time
from typing import Optional

from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.infrastructure.redis_client import get_redis
from ticketing.models.user import Role

logger = get_logger(__name__)
settings = get_settings()

SESSION_PREFIX = "sess:"

# session_id -> (data, expires_at epoch seconds)
_memory_sessions: dict[str, tuple[dict, float]] = {}


def session_ttl(roles: list[str]) -> int:
    if Role.ORGANIZER.value in roles:
        return settings.SESSION_TTL_ORGANIZER
    return settings.SESSION_TTL_BUYER


def _key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def _prune_memory_sessions(now: float) -> None:
    expired = [sid for sid, (_, expires_at) in _memory_sessions.items() if expires_at < now]
    for sid in expired:
        del _memory_sessions[sid]


async def _store(session_id: str, data: dict) -> None:
    ttl = session_ttl(data["roles"])
    client = await get_redis()
    if client is not None:
        try:
            await client.setex(_key(session_id), ttl, json.dumps(data))
            return
        except Exception as e:
            logger.warning("session_store_redis_failed", error=str(e))
    now = time.time()
    _prune_memory_sessions(now)
    _memory_sessions[session_id] = (data, now + ttl)


async def _load(session_id: str) -> Optional[dict]:
    client = await get_redis()
    if client is not None:
        try:
            raw = await client.get(_key(session_id))
            if raw:
                return json.loads(raw)
        except Exception as e:
            logger.warning("session_load_redis_failed", error=str(e))

    entry = _memory_sessions.get(session_id)
    if entry is None:
        return None
    data, expires_at = entry
    if expires_at < time.time():
        _memory_sessions.pop(session_id, None)
        return None
    return data


async def create_session(
    user_id: int,
    email: str,
    name: Optional[str],
    roles: list[str],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> str:
    session_id = secrets.token_hex(32)
    now = int(time.time())
    data = {
        "user_id": user_id,
        "email": email,
        "name": name,
        "roles": roles,
        "active_role": "organizer" if Role.ORGANIZER.value in roles else "buyer",
        "created_at": now,
        "last_activity": now,
        "ip_address": ip_address,
        "user_agent": user_agent,
    }
    await _store(session_id, data)
    logger.info("session_created", user_id=user_id, ttl=session_ttl(roles))
    return session_id


async def get_session(session_id: str) -> Optional[dict]:
    """
    Return the session, or None if it does not exist or has been idle
    longer than its TTL. Idle sessions are deleted.
    """
    if not session_id:
        return None
    data = await _load(session_id)
    if data is None:
        return None

    now = int(time.time())
    if now - data["last_activity"] > session_ttl(data["roles"]):
        await delete_session(session_id)
        logger.info("session_expired", user_id=data["user_id"])
        return None
    return data


async def touch_session(session_id: str, data: dict) -> dict:
    """Refresh last_activity, at most once per debounce window."""
    now = int(time.time())
    if now - data["last_activity"] < settings.SESSION_ACTIVITY_DEBOUNCE:
        return data
    data = {**data, "last_activity": now}
    await _store(session_id, data)
    return data


async def update_session(session_id: str, **changes) -> Optional[dict]:
    data = await get_session(session_id)
    if data is None:
        return None
    data = {**data, **changes}
    await _store(session_id, data)
    return data


async def delete_session(session_id: str) -> None:
    _memory_sessions.pop(session_id, None)
    client = await get_redis()
    if client is not None:
        try:
            await client.delete(_key(session_id))
        except Exception as e:
            logger.warning("session_delete_redis_failed", error=str(e))
