from __future__ import annotations

"""
Role rosters (governors, leaders).

A roster is an explicit address -> role-flag mapping plus a maintained
member count. It is only mutated through add()/remove(), which keep the
count equal to the number of flagged addresses.

Governor and leader rosters are independent: holding one role never
implies the other.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .errors import ConfigError
from .proposal_ids import normalize_address

log = logging.getLogger(__name__)


class Role(str, Enum):
    GOVERNOR = "governor"
    LEADER = "leader"


class RoleRoster:
    def __init__(self, role: Role, members: Optional[Iterable[str]] = None):
        self.role = Role(role)
        self._flags: Dict[str, bool] = {}
        self._count: int = 0
        for m in members or ():
            self.add(m)

    # ------------------------
    # Reads
    # ------------------------
    def is_member(self, account: str) -> bool:
        try:
            key = normalize_address(account)
        except (TypeError, ValueError):
            return False
        return self._flags.get(key, False)

    def __contains__(self, account: object) -> bool:
        return isinstance(account, str) and self.is_member(account)

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def members(self) -> List[str]:
        return sorted(a for a, flag in self._flags.items() if flag)

    # ------------------------
    # Mutations
    # ------------------------
    def add(self, account: str) -> str:
        key = normalize_address(account)
        if self._flags.get(key, False):
            raise ConfigError(f"{key} already holds the {self.role.value} role")
        self._flags[key] = True
        self._count += 1
        log.debug("%s added: %s (count=%d)", self.role.value, key, self._count)
        return key

    def remove(self, account: str) -> str:
        key = normalize_address(account)
        if not self._flags.get(key, False):
            raise ConfigError(f"{key} does not hold the {self.role.value} role")
        self._flags[key] = False
        self._count -= 1
        log.debug("%s removed: %s (count=%d)", self.role.value, key, self._count)
        return key

    # ------------------------
    # Snapshot
    # ------------------------
    def to_state(self) -> Dict[str, Any]:
        return {"role": self.role.value, "members": self.members()}

    @classmethod
    def from_state(cls, state: Dict[str, Any], role: Role) -> "RoleRoster":
        stored = state.get("role", role.value) if isinstance(state, dict) else role.value
        if stored != Role(role).value:
            raise ConfigError(f"roster snapshot is for role {stored!r}, expected {Role(role).value!r}")
        members = state.get("members", []) if isinstance(state, dict) else []
        return cls(role, members)
