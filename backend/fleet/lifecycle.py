"""
Job status rules.

    pending -> assigned -> in_progress -> completed
       \\           \\
        `-----------`--> cancelled

A job never moves backward. Entering ``assigned`` happens only through the
atomic assignment primitive in ``fleet.db.jobs``; this module decides whether
a move is legal and which timestamps it stamps.
"""
from datetime import datetime, timezone
from typing import Optional

from fleet.core.errors import Forbidden, ValidationFailed
from fleet.policy import Actor, enforce

TRANSITIONS = {
    "pending": {"assigned", "cancelled"},
    "assigned": {"in_progress", "cancelled"},
    "in_progress": {"completed"},
    "completed": set(),
    "cancelled": set(),
}

DRIVER_TARGETS = {"in_progress", "completed"}

# finishing a job hands the driver and vehicle back
RELEASING = {"completed", "cancelled"}

ACTIVE = ("assigned", "in_progress")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_transition(current: str, target: str):
    if target not in TRANSITIONS.get(current, set()):
        raise ValidationFailed(f"Cannot move job from {current} to {target}")


def validate_transition(
    job: dict,
    target: str,
    actor: Actor,
    assignee_user_id: Optional[str],
    now: Optional[datetime] = None,
) -> dict:
    """Check ``actor`` may move ``job`` to ``target``; return the fields to set.

    ``assignee_user_id`` is the user id behind the job's assigned driver.
    Moves into ``assigned`` are validated here but applied by the caller via
    the assignment primitive.
    """
    if actor.role == "driver":
        if target not in DRIVER_TARGETS:
            raise ValidationFailed("Invalid status for driver")
        if assignee_user_id != actor.id:
            raise Forbidden()
    else:
        enforce(actor, "job", "transition", assignee_user_id)

    check_transition(job["status"], target)

    now = as_utc(now) or datetime.now(timezone.utc)
    update = {"status": target}
    if target == "in_progress":
        update["actual_pickup"] = now
    elif target == "completed":
        pickup = as_utc(job.get("actual_pickup"))
        update["actual_delivery"] = max(now, pickup) if pickup else now
    return update


def validate_field_edit(actor: Actor):
    """Anything other than a status move needs a dispatch role."""
    if not actor.is_dispatch:
        raise Forbidden()
