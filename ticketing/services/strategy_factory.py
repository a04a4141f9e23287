"""
Inventory gate factory.
Configures which fail-fast check runs in front of the database.
"""

from typing import Optional

from ticketing.services.interfaces.inventory_gate import InventoryGate
from ticketing.services.interfaces.database_gate import DatabaseGate
from ticketing.services.inventory_gate_service import RedisInventoryGate
from ticketing.core.config import settings


def get_inventory_gate_strategy() -> InventoryGate:
    """
    Build the configured gate.

    - database: DatabaseGate (simple, default)
    - redis: RedisInventoryGate (high-contention on-sales)

    Selected via the INVENTORY_GATE env var.
    """
    if settings.INVENTORY_GATE == 'redis':
        return RedisInventoryGate()
    return DatabaseGate()


# Singleton instance
_gate: Optional[InventoryGate] = None


def get_inventory_gate() -> InventoryGate:
    """Get inventory gate singleton."""
    global _gate
    if _gate is None:
        _gate = get_inventory_gate_strategy()
    return _gate
