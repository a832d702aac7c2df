from __future__ import annotations

from typing import TYPE_CHECKING

from werkzeug.security import check_password_hash

from app.nexus.audit import record_event
from app.nexus.errors import ValidationError
from app.nexus.users import set_password, update_user
from app.nexus.utils import str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User

# Role, status, email and verification are managed by the tenant admin or super admin.
PROFILE_FIELDS = ("name", "username", "phone", "business_name")


def update_profile(s: "Session", user: "User", payload: dict) -> "User":
    """Self-service edit of the caller's own account."""
    locked = sorted(set(payload) - set(PROFILE_FIELDS))
    if locked:
        raise ValidationError(f"These fields cannot be changed from the profile: {', '.join(locked)}", details=locked)
    return update_user(s, user, payload, actor=user)


def change_password(s: "Session", user: "User", payload: dict) -> None:
    current = str_field(payload, "current_password", strip=False)
    new = str_field(payload, "new_password", strip=False)
    if not current or not new:
        raise ValidationError("current_password and new_password are required.")
    if not check_password_hash(user.password_hash, current):
        raise ValidationError("Current password is incorrect.", code="INVALID_PASSWORD")
    if new == current:
        raise ValidationError("New password must be different from the current password.")

    set_password(s, user, new)
    record_event(s, actor=user, action="auth.password_changed", entity_type="User", entity_id=str(user.id))
