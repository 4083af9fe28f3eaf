"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional

from fastapi import Depends

from delivery_backend.app.core.dependencies import get_current_user
from delivery_backend.app.core.exceptions import InsufficientPermissionsError
from delivery_backend.app.domain.orders.entities import Order
from delivery_backend.app.models.enums import UserRole


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/orders")
        async def list_orders(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Raises:
        InsufficientPermissionsError: 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            user_role = UserRole(current_user.get("role"))
        except ValueError:
            raise InsufficientPermissionsError("Invalid role in token")

        if user_role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}",
                details={"role": user_role.value}
            )

        return current_user

    return role_checker


require_admin = require_role([UserRole.ADMIN])
require_client = require_role([UserRole.CLIENT])
require_driver = require_role([UserRole.DRIVER])


def can_access_order(order: Order, current_user: dict) -> bool:
    """
    Customers see their own orders, drivers the orders assigned to them,
    admins everything.
    """
    role = current_user.get("role")
    user_id = current_user.get("user_id")

    if role == UserRole.ADMIN.value:
        return True
    if role == UserRole.CLIENT.value:
        return order.customer_id == user_id
    if role == UserRole.DRIVER.value:
        return order.driver_id is not None and order.driver_id == user_id
    return False


class OwnershipGuard:
    """
    Class-based ownership guard for order access.

    Usage:
        ownership_guard = OwnershipGuard()

        order = await service.get_order(order_id)
        ownership_guard.enforce(order, current_user)
    """

    def enforce(self, order: Order, current_user: dict, resource_name: str = "order"):
        """
        Raises:
            InsufficientPermissionsError: 403 if the user may not access the order
        """
        if not can_access_order(order, current_user):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )


ownership_guard = OwnershipGuard()
