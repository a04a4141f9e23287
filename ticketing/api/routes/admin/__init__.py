"""
Admin console routes. Every endpoint requires the ADMIN role.
"""

from fastapi import APIRouter

from ticketing.api.routes.admin import dashboard, users, organizers, events, orders

router = APIRouter(prefix="/admin")
router.include_router(dashboard.router)
router.include_router(users.router)
router.include_router(organizers.router)
router.include_router(events.router)
router.include_router(orders.router)
