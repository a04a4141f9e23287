"""
Payment gateway interface.
Checkout and payouts talk to this; tests plug in an in-memory fake.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class PaymentGatewayError(Exception):
    """The payment provider rejected a call or could not be reached."""


class PaymentGateway(ABC):
    """
    Provider operations used by the platform.

    Amounts are always in the currency's minor unit (kobo for NGN).
    Every method returns the provider's `data` object or raises
    PaymentGatewayError.
    """

    @abstractmethod
    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        reference: str,
        metadata: Optional[dict[str, Any]] = None,
        callback_url: Optional[str] = None,
    ) -> dict:
        """Start a card checkout; returns authorization_url and access_code."""

    @abstractmethod
    async def verify_transaction(self, reference: str) -> dict:
        """Look up a transaction; `status` is "success" once paid."""

    @abstractmethod
    async def create_transfer_recipient(
        self, name: str, account_number: str, bank_code: str, currency: str = "NGN"
    ) -> dict:
        """Register a bank account; returns recipient_code and details."""

    @abstractmethod
    async def initiate_transfer(
        self, amount_minor: int, recipient_code: str, reason: str, reference: str
    ) -> dict:
        """Send money from the platform balance to a recipient."""

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Check the provider signature over the raw webhook body."""
