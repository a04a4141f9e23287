"""
Organizer dashboard routes. Every endpoint requires the ORGANIZER role.
"""

from fastapi import APIRouter

from ticketing.api.routes.organizer import events, promo_codes, payouts, revenue

router = APIRouter(prefix="/organizer")
router.include_router(events.router)
router.include_router(promo_codes.router)
router.include_router(payouts.router)
router.include_router(revenue.router)
