"""
Inventory gate interface.
Allows swapping the fail-fast check in front of the database reservation.
"""

from abc import ABC, abstractmethod


class InventoryGate(ABC):
    """
    Advisory check run before the authoritative database reservation.

    Implementations:
    - DatabaseGate: No pre-check, rely on DB optimistic locking
    - RedisInventoryGate: Atomic Lua decrement in Redis before DB

    The database always has the final word; a gate may only reject early.
    """

    @abstractmethod
    async def admit(self, ticket_type_id: int, reservation_id: str, quantity: int) -> bool:
        """
        Check if a reservation request should reach the database.

        Returns:
            True if admitted (proceed to DB)
            False if rejected (fail fast)
        """
        pass

    @abstractmethod
    async def release(self, ticket_type_id: int, reservation_id: str):
        """
        Give back units taken by admit() when the database step fails.
        """
        pass

    @abstractmethod
    async def sync(self, ticket_type_id: int, available: int):
        """
        Reset the gate's counter to the database's available quantity.
        """
        pass
