"""Exchange status transitions and who may perform them."""

from __future__ import annotations

from skillswap.exceptions import AuthorizationError, ValidationError

STATUSES = ("pending", "active", "completed", "cancelled", "rejected")

# completed -> active is not listed: it only happens when a learning path is un-completed.
VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["active", "rejected", "cancelled"],
    "active": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
    "rejected": [],
}

# Which side of the exchange may request each transition.
TRANSITION_ACTORS: dict[tuple[str, str], frozenset[str]] = {
    ("pending", "active"): frozenset({"provider"}),
    ("pending", "rejected"): frozenset({"provider"}),
    ("pending", "cancelled"): frozenset({"requester"}),
    ("active", "completed"): frozenset({"requester", "provider"}),
    ("active", "cancelled"): frozenset({"requester", "provider"}),
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises ValidationError if invalid."""
    if target_status not in STATUSES:
        msg = f"Invalid status: {target_status}"
        raise ValidationError(msg)
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        msg = f"Cannot change exchange status from {current_status} to {target_status}"
        raise ValidationError(msg, allowed=valid)


def validate_actor(current_status: str, target_status: str, role: str) -> None:
    """Raise AuthorizationError when ``role`` may not perform the transition."""
    allowed = TRANSITION_ACTORS.get((current_status, target_status), frozenset())
    if role not in allowed:
        if target_status in ("active", "rejected"):
            msg = "Only the provider can accept or reject this exchange"
        else:
            msg = "Only the requester can cancel a pending exchange"
        raise AuthorizationError(msg)
