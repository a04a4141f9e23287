"""
Paystack REST client built on httpx.

Only the handful of endpoints the platform needs: transaction
initialize/verify for checkout, transfer recipient/transfer for payouts,
and HMAC-SHA512 webhook signature checks.
"""

import hashlib
import hmac
from typing import Any, Optional

import httpx

from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.services.interfaces.payment_gateway import PaymentGateway, PaymentGatewayError

logger = get_logger(__name__)
settings = get_settings()


class PaystackGateway(PaymentGateway):

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.error("paystack_timeout", path=path, error=str(e))
            raise PaymentGatewayError("Payment provider timed out. Please try again.") from e
        except httpx.HTTPError as e:
            logger.error("paystack_unreachable", path=path, error=str(e))
            raise PaymentGatewayError("Payment provider is unavailable. Please try again.") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"Paystack returned HTTP {response.status_code}"
            logger.warning("paystack_request_failed", path=path, status_code=response.status_code, message=message)
            raise PaymentGatewayError(message)

        return body.get("data") or {}

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        reference: str,
        metadata: Optional[dict[str, Any]] = None,
        callback_url: Optional[str] = None,
    ) -> dict:
        payload = {"email": email, "amount": amount_minor, "reference": reference}
        if metadata:
            payload["metadata"] = metadata
        if callback_url:
            payload["callback_url"] = callback_url
        return await self._request("POST", "/transaction/initialize", json=payload)

    async def verify_transaction(self, reference: str) -> dict:
        return await self._request("GET", f"/transaction/verify/{reference}")

    async def create_transfer_recipient(
        self, name: str, account_number: str, bank_code: str, currency: str = "NGN"
    ) -> dict:
        return await self._request(
            "POST",
            "/transferrecipient",
            json={
                "type": "nuban",
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency,
            },
        )

    async def initiate_transfer(
        self, amount_minor: int, recipient_code: str, reason: str, reference: str
    ) -> dict:
        return await self._request(
            "POST",
            "/transfer",
            json={
                "source": "balance",
                "amount": amount_minor,
                "recipient": recipient_code,
                "reason": reason,
                "reference": reference,
            },
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        expected = hmac.new(self.secret_key.encode("utf-8"), payload, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature or "")
