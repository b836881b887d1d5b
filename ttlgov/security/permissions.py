from __future__ import annotations

"""
ttlgov/security/permissions.py
------------------------------

Role gate shared by the governance engine and the gateway.

Caller identity is taken as given (the hosting environment authenticates
it); this module only answers "does this caller hold the role?" and turns
a "no" into an AuthorizationError carrying an audit context.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from ..runtime.errors import AuthorizationError
from ..runtime.roles import RoleRoster


@dataclass(frozen=True)
class PermissionContext:
    """
    Context attached to a denied call for audit logs.
    """

    action: str
    reason: str
    detail: Optional[str] = None


def require_role(roster: RoleRoster, caller: str, *, action: str = "unknown") -> None:
    """
    Requires caller to hold the roster's role.
    """
    if roster.is_member(caller):
        return
    ctx = PermissionContext(
        action=action,
        reason=f"missing_{roster.role.value}_role",
        detail=f"caller={caller!r}",
    )
    raise AuthorizationError(
        f"{caller!r} must hold the {roster.role.value} role for '{action}'",
        detail=asdict(ctx),
    )
