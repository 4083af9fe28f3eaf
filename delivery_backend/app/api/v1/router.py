"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from delivery_backend.app.api.v1.endpoints import (
    auth, pricing, tracking, orders, driver_orders, driver_earnings, admin_orders
)

router = APIRouter()

# Authentication (token introspection / logout)
router.include_router(auth.router)

# Public endpoints
router.include_router(pricing.router)
router.include_router(tracking.router)

# Client endpoints
router.include_router(orders.router)

# Driver endpoints
router.include_router(driver_orders.router)
router.include_router(driver_earnings.router)

# Admin endpoints
router.include_router(admin_orders.router)
