"""
Row-level access rules for the order ledger and catalog
"""

from foodhub.auth.auth_handler import Actor
from foodhub.utils.error_handler import ForbiddenError


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise ForbiddenError(f"Only administrators may {action}")


def can_read_order(actor: Actor, order) -> bool:
    """Admins read every order; a customer session reads only its own"""
    if actor.is_admin:
        return True
    return actor.session_id is not None and actor.session_id == order.session_id
