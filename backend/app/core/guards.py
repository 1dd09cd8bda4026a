"""
Security guards for role-based and ownership-based access control.

Role gates are either static lists or hierarchy checks; ownership only
restricts sales agents, who may touch the drivers they registered and
nothing else.
"""

from typing import Dict, List, Optional
from fastapi import Depends
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import UserRole


# Higher roles inherit the features of lower ones
ROLE_HIERARCHY: Dict[UserRole, List[UserRole]] = {
    UserRole.ADMIN: [UserRole.ADMIN, UserRole.OPERATIONS, UserRole.SALES_AGENT],
    UserRole.OPERATIONS: [UserRole.OPERATIONS, UserRole.SALES_AGENT],
    UserRole.SALES_AGENT: [UserRole.SALES_AGENT],
}


def _role_of(current_user: dict) -> Optional[UserRole]:
    try:
        return UserRole(current_user.get("role"))
    except ValueError:
        return None


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/users")
        async def list_users(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Raises:
        InsufficientPermissionsError (403) if the user's role is not listed
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if _role_of(current_user) not in allowed_roles:
            raise InsufficientPermissionsError()
        return current_user

    return role_checker


def require_min_role(min_role: UserRole):
    """Dependency factory gating by hierarchy: the caller's role must include ``min_role``."""
    async def hierarchy_checker(current_user: dict = Depends(get_current_user)) -> dict:
        role = _role_of(current_user)
        if role is None or min_role not in ROLE_HIERARCHY[role]:
            raise InsufficientPermissionsError()
        return current_user

    return hierarchy_checker


require_admin = require_role([UserRole.ADMIN])
require_operations_or_admin = require_min_role(UserRole.OPERATIONS)
require_sales_agent = require_role([UserRole.SALES_AGENT, UserRole.ADMIN])


def verify_ownership(resource_owner_id: int, current_user: dict) -> bool:
    """
    Verify that the current user may act on a driver-owned resource.

    Sales agents must have registered the driver; operations and admins
    may act on any driver.
    """
    if _role_of(current_user) == UserRole.SALES_AGENT:
        return current_user.get("user_id") == resource_owner_id
    return True


class OwnershipGuard:
    """
    Class-based ownership guard for driver records.

    Usage:
        ownership_guard = OwnershipGuard()

        driver = await get_driver_or_404(db, driver_id)
        ownership_guard.enforce(driver.registered_by_id, current_user, "driver")
    """

    def enforce(self, resource_owner_id: int, current_user: dict, resource_name: str = "resource"):
        """
        Raise 403 unless ``verify_ownership`` passes.

        Args:
            resource_owner_id: ``registered_by_id`` of the driver
            current_user: Current authenticated user
            resource_name: Name of resource for error message
        """
        if not verify_ownership(resource_owner_id, current_user):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, current_user: dict) -> Optional[int]:
        """
        Get the ``registered_by_id`` to scope driver queries to.

        Returns the caller's id for sales agents and None (no filtering)
        for operations and admins.
        """
        if _role_of(current_user) == UserRole.SALES_AGENT:
            return current_user.get("user_id")
        return None
