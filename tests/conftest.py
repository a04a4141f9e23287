"""
Pytest fixtures for test database, client, payment gateway and accounts.

Each test gets a fresh database with the full schema: a SQLite file
(aiosqlite) by default, or TEST_DATABASE_URL when set (a Postgres scratch
database, dropped and recreated per test). Redis is disabled (in-memory
sessions, no cache) and an in-memory gateway stands in for Paystack.
"""

import hashlib
import hmac
import os
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["RESERVATION_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["INVENTORY_GATE"] = "database"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from ticketing.main import app
from ticketing.api.deps import get_payment_gateway
from ticketing.db.base import Base, utcnow
from ticketing.db.session import get_db
from ticketing.core.security import create_access_token, hash_password
from ticketing.models import (
    User, UserRole, OrganizerProfile, Role, VerificationStatus, Event, TicketType, EventStatus,
)
from ticketing.services import session_service
from ticketing.services.interfaces.payment_gateway import PaymentGateway, PaymentGatewayError

PASSWORD = "testpassword123"


class FakeGateway(PaymentGateway):
    """In-memory stand-in for Paystack."""

    secret_key = "sk_test_webhook_secret"

    def __init__(self):
        self.transactions: dict[str, dict] = {}
        self.transfers: list[dict] = []
        self.fail_initialize = False
        self.fail_transfers = False

    async def initialize_transaction(self, email, amount_minor, reference, metadata=None, callback_url=None):
        if self.fail_initialize:
            raise PaymentGatewayError("Gateway unavailable")
        self.transactions[reference] = {
            "status": "pending",
            "amount": amount_minor,
            "reference": reference,
            "metadata": metadata or {},
        }
        return {
            "authorization_url": f"https://checkout.paystack.test/{reference}",
            "access_code": f"ac_{reference}",
            "reference": reference,
        }

    async def verify_transaction(self, reference):
        if reference not in self.transactions:
            raise PaymentGatewayError("Transaction reference not found")
        return dict(self.transactions[reference])

    async def create_transfer_recipient(self, name, account_number, bank_code, currency="NGN"):
        return {
            "recipient_code": f"RCP_{account_number}",
            "details": {"account_name": name.upper(), "bank_name": "Test Bank", "bank_code": bank_code},
        }

    async def initiate_transfer(self, amount_minor, recipient_code, reason, reference):
        if self.fail_transfers:
            raise PaymentGatewayError("Insufficient platform balance")
        transfer = {"amount": amount_minor, "recipient": recipient_code, "reference": reference, "status": "pending"}
        self.transfers.append(transfer)
        return transfer

    def verify_webhook_signature(self, payload, signature):
        return hmac.compare_digest(self.sign(payload), signature or "")

    def sign(self, payload: bytes) -> str:
        return hmac.new(self.secret_key.encode("utf-8"), payload, hashlib.sha512).hexdigest()

    def settle(self, reference: str, status: str = "success", amount=None):
        transaction = self.transactions[reference]
        transaction["status"] = status
        if amount is not None:
            transaction["amount"] = amount


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a throwaway database, yield a session factory, then dispose."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, gateway) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB and payment gateway dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    session_service._memory_sessions.clear()


async def _create_user(
    session_factory,
    email: str,
    roles: tuple[Role, ...] = (Role.BUYER,),
    organizer_status: str = None,
    name: str = "Test User",
) -> User:
    async with session_factory() as session:
        user = User(email=email, name=name, hashed_password=hash_password(PASSWORD))
        user.roles = [UserRole(role=role.value) for role in roles]
        session.add(user)
        await session.flush()
        if organizer_status:
            session.add(
                OrganizerProfile(
                    user_id=user.id,
                    business_name=f"{name} Events",
                    verification_status=organizer_status,
                )
            )
        await session.commit()
        return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def buyer(session_factory) -> User:
    return await _create_user(session_factory, "buyer@example.com", name="Ada Buyer")


@pytest_asyncio.fixture
async def organizer(session_factory) -> User:
    return await _create_user(
        session_factory,
        "organizer@example.com",
        roles=(Role.BUYER, Role.ORGANIZER),
        organizer_status=VerificationStatus.VERIFIED.value,
        name="Olu Organizer",
    )


@pytest_asyncio.fixture
async def other_organizer(session_factory) -> User:
    return await _create_user(
        session_factory,
        "rival@example.com",
        roles=(Role.BUYER, Role.ORGANIZER),
        organizer_status=VerificationStatus.VERIFIED.value,
        name="Rival Organizer",
    )


@pytest_asyncio.fixture
async def admin(session_factory) -> User:
    return await _create_user(
        session_factory, "admin@example.com", roles=(Role.BUYER, Role.ADMIN), name="Admin"
    )


@pytest.fixture
def buyer_headers(buyer: User) -> dict:
    return _headers(buyer)


@pytest.fixture
def organizer_headers(organizer: User) -> dict:
    return _headers(organizer)


@pytest.fixture
def other_organizer_headers(other_organizer: User) -> dict:
    return _headers(other_organizer)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return _headers(admin)


@pytest_asyncio.fixture
async def event(session_factory, organizer: User) -> SimpleNamespace:
    """
    A published event 30 days out with three ticket types:
    Regular (5000, 10 units), VIP (20000, 2 units) and Free (0, 5 units).
    """
    start = utcnow() + timedelta(days=30)
    async with session_factory() as session:
        record = Event(
            organizer_id=organizer.id,
            title="Lagos Jazz Night",
            slug="lagos-jazz-night",
            description="An evening of live jazz",
            category="music",
            venue_name="Terra Kulture",
            city="Lagos",
            start_at=start,
            end_at=start + timedelta(hours=4),
            status=EventStatus.PUBLISHED.value,
        )
        regular = TicketType(name="Regular", price=Decimal("5000.00"), total_quantity=10, max_per_order=4)
        vip = TicketType(name="VIP", price=Decimal("20000.00"), total_quantity=2, max_per_order=2)
        free = TicketType(name="Free", price=Decimal("0.00"), total_quantity=5, max_per_order=2)
        record.ticket_types = [regular, vip, free]
        session.add(record)
        await session.commit()

        return SimpleNamespace(
            id=record.id,
            slug=record.slug,
            regular=regular.id,
            vip=vip.id,
            free=free.id,
        )


@pytest.fixture
def reserve(client: AsyncClient):
    """Reserve tickets through the API and return the reservation JSON."""

    async def _reserve(event_id: int, ticket_type_id: int, quantity: int = 1, headers: dict = None) -> dict:
        response = await client.post(
            "/api/v1/tickets/reserve",
            json={"event_id": event_id, "ticket_type_id": ticket_type_id, "quantity": quantity},
            headers=headers or {},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _reserve


@pytest.fixture
def checkout(client: AsyncClient, reserve):
    """Reserve then create an order; returns the order JSON."""

    async def _checkout(
        event_id: int,
        ticket_type_id: int,
        quantity: int = 1,
        email: str = "buyer@example.com",
        headers: dict = None,
        promo_code: str = None,
        attendees: list = None,
    ) -> dict:
        reservation = await reserve(event_id, ticket_type_id, quantity, headers=headers)
        body = {
            "event_id": event_id,
            "ticket_type_id": ticket_type_id,
            "quantity": quantity,
            "reservation_id": reservation["reservation_id"],
            "customer_email": email,
            "customer_name": "Ada Buyer",
        }
        if promo_code:
            body["promo_code"] = promo_code
        if attendees:
            body["attendees"] = attendees
        response = await client.post("/api/v1/orders/", json=body, headers=headers or {})
        assert response.status_code == 201, response.text
        return response.json()

    return _checkout


@pytest.fixture
def paid_order(client: AsyncClient, checkout, gateway: FakeGateway):
    """Check out, initialize payment and settle it through the verify endpoint."""

    async def _paid_order(event_id: int, ticket_type_id: int, quantity: int = 1, **kwargs) -> dict:
        order = await checkout(event_id, ticket_type_id, quantity, **kwargs)
        init = await client.post("/api/v1/payments/initialize", json={"order_id": order["id"]})
        assert init.status_code == 200, init.text
        reference = init.json()["reference"]
        gateway.settle(reference)
        verify = await client.get(f"/api/v1/payments/verify/{reference}")
        assert verify.json()["paid"] is True
        return (await client.get(f"/api/v1/orders/reference/{reference}")).json()

    return _paid_order
