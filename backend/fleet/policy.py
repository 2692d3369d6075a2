"""
Role policy: who may see or mutate what.

One table for every resource kind, so routes never branch on roles
themselves. Decisions are pure; resolving ``owner_id`` (the user id that owns
or is assigned to the resource) is the caller's job.
"""
from dataclasses import dataclass, field
from typing import Literal, Optional

from fleet.core.errors import Forbidden

Kind = Literal["user", "driver", "vehicle", "job"]
Operation = Literal["read", "list", "create", "write", "delete", "transition"]

ANY = "any"    # allowed whatever the owner
SELF = "self"  # allowed only when owner_id is the actor


@dataclass(frozen=True)
class Actor:
    id: str
    role: str
    profile: dict = field(default_factory=dict, compare=False)

    @property
    def is_dispatch(self) -> bool:
        return self.role in ("admin", "dispatcher")


RULES: dict[str, dict[str, dict[str, str]]] = {
    "dispatcher": {
        "user": {"read": ANY, "list": ANY, "write": SELF},
        "driver": {"read": ANY, "list": ANY, "create": ANY, "write": ANY},
        "vehicle": {"read": ANY, "list": ANY, "create": ANY, "write": ANY},
        "job": {"read": ANY, "list": ANY, "create": ANY, "write": ANY, "transition": ANY},
    },
    "driver": {
        "user": {"read": SELF, "write": SELF},
        # listing is allowed but the result is narrowed to the actor's own record
        "driver": {"read": SELF, "list": ANY, "write": SELF},
        "vehicle": {"read": SELF, "list": ANY},
        "job": {"read": SELF, "list": ANY, "transition": SELF},
    },
}


def is_allowed(actor: Actor, kind: Kind, operation: Operation, owner_id: Optional[str] = None) -> bool:
    if actor.role == "admin":
        return True

    scope = RULES.get(actor.role, {}).get(kind, {}).get(operation)
    if scope == ANY:
        return True
    if scope == SELF:
        return owner_id is not None and owner_id == actor.id
    return False


def enforce(actor: Actor, kind: Kind, operation: Operation, owner_id: Optional[str] = None):
    if not is_allowed(actor, kind, operation, owner_id):
        raise Forbidden()


def narrows_listing(actor: Actor, kind: Kind) -> bool:
    """True when a listing must be filtered down to what the actor owns."""
    return not actor.is_dispatch and kind in ("driver", "vehicle", "job")


def enforce_role_change(actor: Actor, target: dict, new_role: Optional[str]):
    if new_role is None or new_role == target.get("role"):
        return
    if actor.role != "admin":
        raise Forbidden("Only an admin can change roles")
