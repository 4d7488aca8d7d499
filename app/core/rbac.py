"""
Role-Based Access Control dependencies for the HTTP layer.

These are early rejections only; every registry operation re-checks roles
inside its own ledger transaction.
"""
from fastapi import HTTPException, status, Depends, Request

from app.core.security import get_caller_address
from app.db.models import Role
from app.services.registry import MedicineRegistry


def get_registry(request: Request) -> MedicineRegistry:
    """The registry instance opened at application startup."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registry is not initialized",
        )
    return registry


class RBACChecker:
    """Dependency for checking role-based access."""

    def __init__(self, required_role: Role):
        self.required_role = required_role

    async def __call__(
        self,
        caller: str = Depends(get_caller_address),
        registry: MedicineRegistry = Depends(get_registry),
    ) -> str:
        if not registry.has_role(self.required_role, caller):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {self.required_role.value}",
            )

        return caller


# Convenience dependencies for common role checks
require_admin = RBACChecker(Role.ADMINISTRATOR)
require_referee = RBACChecker(Role.REFEREE)
