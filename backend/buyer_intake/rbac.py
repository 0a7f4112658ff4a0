"""Role checks: owners manage their own buyers, admins manage everything."""

import logging

from buyer_intake.errors import PermissionDeniedError
from buyer_intake.models import Buyer, User
from buyer_intake.schemas.enums import UserRole

logger = logging.getLogger(__name__)


def can_modify(user: User, buyer: Buyer) -> bool:
    """Check if user may update or delete the buyer."""
    return user.role == UserRole.ADMIN.value or buyer.owner_id == user.id


def check_can_modify(user: User, buyer: Buyer, action: str = "modify"):
    """Raise PermissionDeniedError if user is neither owner nor admin."""
    if not can_modify(user, buyer):
        logger.warning(
            f"Permission denied: {user.email} (role: {user.role}) "
            f"attempted to {action} buyer {buyer.id} owned by {buyer.owner_id}"
        )
        raise PermissionDeniedError(f"You do not have permission to {action} this buyer")

