"""
Pass-through inventory gate: every request goes to the conditional UPDATE.
"""

from ticketing.services.interfaces.inventory_gate import InventoryGate


class DatabaseGate(InventoryGate):
    """
    Admits every reservation and keeps no counters.

    The default for single-node deployments, tests, and any setup
    without Redis; oversell protection comes from reservation_service.
    """

    async def admit(self, ticket_type_id: int, reservation_id: str, quantity: int) -> bool:
        return True

    async def release(self, ticket_type_id: int, reservation_id: str):
        pass

    async def sync(self, ticket_type_id: int, available: int):
        pass
