"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from ticketing.api.routes import (
    auth, users, events, tickets, orders, payments, webhooks, promo_codes, organizer, admin,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(events.router)
api_router.include_router(tickets.router)
api_router.include_router(orders.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
api_router.include_router(promo_codes.router)
api_router.include_router(organizer.router)
api_router.include_router(admin.router)
