"""
Redis inventory gate for flash-sale traffic.
Implements InventoryGate using two Lua scripts.

Circuit Breaker Pattern:
  On Redis failure, the gate "fails open" (admits all requests).
  A Redis outage must not block ticket sales; the conditional UPDATE on
  ticket_types still prevents overselling.

Counter lifecycle:
  inventory:<ticket_type_id>:available is loaded lazily from the database
  (sync) and reset after every database inventory change. Until it is
  loaded the gate admits everything.
"""

import os

from ticketing.services.interfaces.inventory_gate import InventoryGate
from ticketing.infrastructure.redis_client import get_redis
from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_SCRIPT_DIR = os.path.join(os.path.dirname(__file__), '../infrastructure')
with open(os.path.join(_SCRIPT_DIR, 'reserve_inventory.lua'), 'r') as f:
    RESERVE_SCRIPT = f.read()
with open(os.path.join(_SCRIPT_DIR, 'release_inventory.lua'), 'r') as f:
    RELEASE_SCRIPT = f.read()

COUNTER_NOT_LOADED = -1


def _counter_key(ticket_type_id: int) -> str:
    return f"inventory:{ticket_type_id}:available"


def _hold_key(reservation_id: str) -> str:
    return f"reservation:{reservation_id}"


class RedisInventoryGate(InventoryGate):
    """
    Redis-based admission control.

    Strategy: Fail fast at the Redis counter before hitting the database.
    Prevents retry storms on the ticket_types row during on-sale spikes.
    """

    def __init__(self):
        self._reserve = None
        self._release = None

    async def _scripts(self):
        client = await get_redis()
        if client is None:
            return None
        if self._reserve is None:
            self._reserve = client.register_script(RESERVE_SCRIPT)
            self._release = client.register_script(RELEASE_SCRIPT)
        return client

    async def admit(self, ticket_type_id: int, reservation_id: str, quantity: int) -> bool:
        try:
            client = await self._scripts()
            if client is None:
                return True
            ttl_seconds = settings.RESERVATION_TTL_MINUTES * 60
            result = await self._reserve(
                keys=[_counter_key(ticket_type_id), _hold_key(reservation_id)],
                args=[quantity, ttl_seconds],
                client=client,
            )
        except Exception as e:
            # Circuit breaker: On Redis failure, fail open (admit all)
            redis_connection_errors.inc()
            logger.warning("inventory_gate_unavailable", ticket_type_id=ticket_type_id, error=str(e))
            return True

        if int(result) == COUNTER_NOT_LOADED:
            return True
        return bool(int(result))

    async def release(self, ticket_type_id: int, reservation_id: str):
        try:
            client = await self._scripts()
            if client is None:
                return
            await self._release(
                keys=[_counter_key(ticket_type_id), _hold_key(reservation_id)],
                args=[],
                client=client,
            )
        except Exception as e:
            redis_connection_errors.inc()
            logger.warning("inventory_gate_release_failed", ticket_type_id=ticket_type_id, error=str(e))

    async def sync(self, ticket_type_id: int, available: int):
        try:
            client = await get_redis()
            if client is None:
                return
            await client.set(_counter_key(ticket_type_id), max(available, 0))
        except Exception as e:
            redis_connection_errors.inc()
            logger.warning("inventory_gate_sync_failed", ticket_type_id=ticket_type_id, error=str(e))
