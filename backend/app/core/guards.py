"""
Security guards for role-based and ownership-based access control.

Read endpoints use these directly; mutating freight operations perform
their own party checks and return typed outcomes instead.
"""

from typing import List
from fastapi import Depends

from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import FreightAccessDeniedError, InsufficientPermissionsError
from backend.app.domain.freight.status_registry import OPEN_STATUSES
from backend.app.models.enums import UserRole
from backend.app.models.freight import Freight
from backend.app.models.freight_assignment import FreightAssignment
from backend.app.models.freight_enums import AssignmentStatus
from backend.app.models.user import User


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/freights")
        async def create_freight(current_user: User = Depends(require_role([UserRole.PRODUCER]))):
            ...

    Raises:
        InsufficientPermissionsError 403 if the caller's role is not in allowed_roles
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise InsufficientPermissionsError([r.value for r in allowed_roles])
        return current_user

    return role_checker


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency for admin-only endpoints."""
    if current_user.role != UserRole.ADMIN:
        raise InsufficientPermissionsError([UserRole.ADMIN.value], "Admin access required")
    return current_user


class OwnershipGuard:
    """
    Decides which users may read a freight's details.

    Usage:
        ownership_guard = OwnershipGuard()

        freight = await freight_store.get_freight(db, freight_id)
        assignments = await freight_store.list_assignments(db, freight_id)
        ownership_guard.enforce(freight, assignments, current_user)
    """

    def can_view(self, freight: Freight, assignments: List[FreightAssignment], user: User) -> bool:
        """
        Admins see everything and producers see their own freights.
        Carriers see freights still open for bidding plus the ones they
        hold an assignment on.
        """
        if user.role == UserRole.ADMIN:
            return True
        if user.role == UserRole.PRODUCER:
            return freight.producer_id == user.id
        if freight.status in OPEN_STATUSES:
            return True
        if user.role == UserRole.COMPANY:
            return user.company_id is not None and any(
                a.company_id == user.company_id for a in assignments
            )
        return any(
            a.driver_id == user.id and a.status != AssignmentStatus.PENDING for a in assignments
        )

    def enforce(self, freight: Freight, assignments: List[FreightAssignment], user: User) -> None:
        """
        Enforce read access.

        Raises:
            FreightAccessDeniedError 403 if the user may not see the freight
        """
        if not self.can_view(freight, assignments, user):
            raise FreightAccessDeniedError(freight.id)
