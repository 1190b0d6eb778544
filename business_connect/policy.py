"""Role and ownership rules, checked once per request before a handler mutates anything."""
from __future__ import annotations

from .errors import PermissionDenied
from .models import Business, User

OWNER_ROLE = "business_owner"
ADMIN_ROLE = "admin"

# Actions that need the business_owner role, with the message shown on refusal.
_ROLE_ACTIONS = {
    "business:create": "only business owners can create business profiles",
    "business:list_own": "only business owners can view business profiles",
    "business:stats": "only business owners can view business statistics",
}

# Actions on an existing business that need its owner or an admin.
_OWNERSHIP_ACTIONS = {
    "business:read": "not authorized to view this business",
    "business:update": "not authorized to update this business",
    "business:delete": "not authorized to delete this business",
    "product:write": "not authorized to manage products of this business",
}

# Actions open to any authenticated user.
_AUTHENTICATED_ACTIONS = {"review:create"}


def is_owner_or_admin(actor: User, business: Business) -> bool:
    return actor.role == ADMIN_ROLE or business.owner_id == actor.user_id


def authorize(actor: User, action: str, resource: Business | None = None) -> None:
    """Raise ``PermissionDenied`` unless ``actor`` may perform ``action`` on ``resource``."""
    if action in _AUTHENTICATED_ACTIONS:
        return

    if action in _ROLE_ACTIONS:
        if actor.role != OWNER_ROLE:
            raise PermissionDenied(_ROLE_ACTIONS[action])
        return

    if action in _OWNERSHIP_ACTIONS:
        if resource is None:
            raise ValueError(f"action {action!r} needs a business")
        if not is_owner_or_admin(actor, resource):
            raise PermissionDenied(_OWNERSHIP_ACTIONS[action])
        return

    raise ValueError(f"unknown action {action!r}")
