"""
Tenancy guard.

Every house-scoped read or mutation runs through `ensure_same_house`
after the entity has been fetched: entity ids are not partitioned by
house, so an id alone never grants access. Role checks are separate.
"""

import logging
from dataclasses import dataclass

from homepanel.core.errors import ForbiddenError, UnauthorizedError
from homepanel.models.user import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Resolved, authenticated actor for one request."""

    user_id: str
    role: str
    house_name: str
    authorized: bool
    display_name: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def ensure_same_house(principal: Principal, house_name: str, what: str = "Entity") -> None:
    """Reject access to an entity owned by another house."""
    if principal.house_name != house_name:
        logger.warning(
            f"Cross-house access blocked: user={principal.user_id} "
            f"house={principal.house_name} target={house_name}"
        )
        raise ForbiddenError(f"{what} not found in your house")


def require_admin(principal: Principal, action: str) -> None:
    """Reject admin-only operations for members."""
    if not principal.is_admin:
        raise UnauthorizedError(f"Only admin can {action}")
