"""Authorization guard and order lifecycle rules.

Every decision takes the caller's ``Identity`` explicitly; nothing here reads
request state. Violations raise the errors from ``legaldesk.errors`` and no
function in this module touches the database.
"""
from enum import Enum
from typing import Mapping, NamedTuple, Optional

from .errors import Forbidden, Unauthenticated, ValidationError

MIN_PASSWORD_LENGTH = 6


class Role(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"

    @classmethod
    def parse(cls, value) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError("Valid role (admin or client) is required")


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Presentation only, never stored
PROGRESS = {
    OrderStatus.PENDING: 25,
    OrderStatus.IN_PROGRESS: 75,
    OrderStatus.COMPLETED: 100,
}


class Identity(NamedTuple):
    id: int
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


# Which roles may set which order field. Ownership is checked separately.
ORDER_FIELD_ROLES = {
    "status": frozenset({Role.ADMIN}),
    "invoice_url": frozenset({Role.ADMIN}),
    "payment_method": frozenset({Role.ADMIN, Role.CLIENT}),
}

ORDER_FIELD_LABELS = {
    "status": "status",
    "invoice_url": "invoice URL",
    "payment_method": "payment method",
}


def progress_percent(status: str) -> int:
    return PROGRESS[OrderStatus(status)]


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError("Invalid status value")


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthenticated("Unauthorized")
    return identity


def require_role(identity: Optional[Identity], role: Role, message: str) -> Identity:
    """Admin-only and client-only operations reject anonymous callers as forbidden too."""
    if identity is None or identity.role is not role:
        raise Forbidden(message)
    return identity


def can_access_order(identity: Identity, order_user_id: int) -> bool:
    if identity.role is Role.ADMIN:
        return True
    if identity.role is Role.CLIENT:
        return order_user_id == identity.id
    raise AssertionError(f"unhandled role {identity.role!r}")


def ensure_can_access_order(identity: Identity, order_user_id: int) -> None:
    if not can_access_order(identity, order_user_id):
        raise Forbidden("Forbidden")


def authorize_order_patch(identity: Identity, order_user_id: int, changes: Mapping[str, object]) -> dict:
    """Check an order patch against the field table and return the validated changes.

    Ownership first, then per-field role permission, then value validation;
    either every field passes or nothing is returned.
    """
    ensure_can_access_order(identity, order_user_id)
    for field in changes:
        allowed = ORDER_FIELD_ROLES.get(field)
        if allowed is None:
            raise ValidationError(f"Unknown order field: {field}")
        if identity.role not in allowed:
            raise Forbidden(f"Clients cannot update order {ORDER_FIELD_LABELS[field]}")

    validated = dict(changes)
    if "status" in validated:
        # permissive: any of the three values, in any order
        validated["status"] = parse_status(validated["status"]).value
    return validated


def resolve_registration_role(requester: Optional[Identity], requested: Optional[str]) -> Role:
    """Only an admin may pick a role; everybody else registers as a client."""
    if requester is None or requester.role is Role.CLIENT:
        return Role.CLIENT
    if requester.role is Role.ADMIN:
        if requested is None:
            return Role.CLIENT
        return Role.parse(requested)
    raise AssertionError(f"unhandled role {requester.role!r}")


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def ensure_role_change_allowed(identity: Identity, target_id: int, new_role: Role) -> None:
    if target_id == identity.id and new_role is not Role.ADMIN:
        raise ValidationError("You cannot change your own admin role")


def ensure_user_delete_allowed(identity: Identity, target_id: int) -> None:
    if target_id == identity.id:
        raise ValidationError("You cannot delete your own account")
