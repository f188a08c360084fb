"""
Role-based access checks for marketplace users.
"""
from typing import Iterable, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials

from trademart.core.errors import ForbiddenError, UnauthenticatedError
from trademart.core.security import bearer_token, decode_token, security
from trademart.db.models import UserRole


def _context_from_payload(payload: dict) -> dict:
    user_id_raw = payload.get("sub") or payload.get("user_id")
    if user_id_raw is None:
        raise UnauthenticatedError("Invalid token: missing user identifier (sub)")
    try:
        role = UserRole(payload.get("role", UserRole.BUYER.value))
    except ValueError:
        raise UnauthenticatedError("Invalid token: unknown role")

    return {
        "sub": str(user_id_raw),
        "user_id": int(user_id_raw),
        "email": payload.get("email"),
        "role": role,
    }


async def get_current_user_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Get current user context (id, email, role) from the bearer token."""
    payload = decode_token(bearer_token(credentials))
    return _context_from_payload(payload)


class RoleChecker:
    """Dependency that admits only the listed roles. Admins always pass."""

    def __init__(self, allowed: Iterable[UserRole], message: Optional[str] = None):
        self.allowed = frozenset(allowed)
        self.message = message

    async def __call__(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> dict:
        context = _context_from_payload(decode_token(bearer_token(credentials)))
        role = context["role"]

        if role != UserRole.ADMIN and role not in self.allowed:
            allowed = ", ".join(sorted(r.value for r in self.allowed))
            raise ForbiddenError(self.message or f"Insufficient permissions. Required: {allowed}")

        return context


require_buyer = RoleChecker({UserRole.BUYER}, "Only buyers can perform this action")
require_supplier = RoleChecker({UserRole.SUPPLIER}, "Only suppliers can perform this action")
require_admin = RoleChecker({UserRole.ADMIN}, "Admin access required")
