"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .inventory_gate import InventoryGate
from .database_gate import DatabaseGate
from .payment_gateway import PaymentGateway, PaymentGatewayError

__all__ = ['InventoryGate', 'DatabaseGate', 'PaymentGateway', 'PaymentGatewayError']
