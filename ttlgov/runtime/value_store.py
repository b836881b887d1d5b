from __future__ import annotations

"""
ttlgov/runtime/value_store.py
-----------------------------

The shared, time-sensitive value store the gateway writes to.

The gateway only depends on the ValueStoreClient protocol. The production
store lives elsewhere; InMemoryValueStore is a deterministic reference
implementation used by tests, the CLI and local simulation.

Store rules (enforced here, never re-validated by the gateway):
- a new TTL may only be set once the current TTL has fully elapsed since
  it was set
- a price must be announced at least one TTL ahead of valid_from; while
  the previous TTL has not yet elapsed since a TTL change, the larger of
  old / new TTL applies
- a scheduled price can be reverted only before it takes effect
- once ownership is renounced, every mutation is refused
"""

import bisect
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from . import events as ev
from .errors import GovernanceError
from .events import EventLog
from .proposal_ids import normalize_address


class ValueStoreError(GovernanceError):
    code = "value_store_error"


class TTLCooldownError(ValueStoreError):
    code = "ttl_cooldown"


class NoticeWindowError(ValueStoreError):
    code = "notice_window"


class ValueStoreClient(Protocol):
    def get_ttl(self) -> int: ...

    def set_ttl(self, ttl: int) -> None: ...

    def set_price(self, message_kind: str, price: int, valid_from: int) -> None: ...

    def revert_price(self, message_kind: str, price: int, valid_from: int) -> None: ...

    def transfer_ownership(self, new_owner: str) -> None: ...

    def renounce_ownership(self) -> None: ...


def _require_uint(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueStoreError(f"{name} must be a non-negative integer, got {value!r}")
    return value


class InMemoryValueStore:
    def __init__(
        self,
        ttl: int,
        owner: Optional[str] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[EventLog] = None,
    ):
        self.clock = clock or (lambda: int(time.time()))
        self.events = events if events is not None else EventLog(self.clock)
        if _require_uint(ttl, "ttl") == 0:
            raise ValueStoreError("ttl must be positive")
        self._ttl = ttl
        self._ttl_set_at = int(self.clock())
        self._previous_ttl: Optional[int] = None
        self.owner: Optional[str] = normalize_address(owner) if owner else None
        self._renounced = False
        # message_kind -> sorted [(valid_from, price)]
        self._prices: Dict[str, List[Tuple[int, int]]] = {}

    # ------------------------
    # Reads
    # ------------------------
    def get_ttl(self) -> int:
        return self._ttl

    @property
    def renounced(self) -> bool:
        return self._renounced

    def notice_window(self, now: Optional[int] = None) -> int:
        now = int(self.clock()) if now is None else now
        if self._previous_ttl is not None and now < self._ttl_set_at + self._previous_ttl:
            return max(self._previous_ttl, self._ttl)
        return self._ttl

    def get_price(self, message_kind: str, at: Optional[int] = None) -> Optional[int]:
        at = int(self.clock()) if at is None else at
        schedule = self._prices.get(message_kind, [])
        current = None
        for valid_from, price in schedule:
            if valid_from > at:
                break
            current = price
        return current

    def schedule(self, message_kind: str) -> List[Tuple[int, int]]:
        return list(self._prices.get(message_kind, []))

    # ------------------------
    # Mutations
    # ------------------------
    def _require_owned(self) -> None:
        if self._renounced:
            raise ValueStoreError("store ownership has been renounced; it is read-only")

    def set_ttl(self, ttl: int) -> None:
        self._require_owned()
        if _require_uint(ttl, "ttl") == 0:
            raise ValueStoreError("ttl must be positive")
        now = int(self.clock())
        ready_at = self._ttl_set_at + self._ttl
        if now < ready_at:
            raise TTLCooldownError(f"current ttl {self._ttl} has not elapsed; next change allowed at {ready_at}")

        previous = self._ttl
        self._previous_ttl = previous
        self._ttl = ttl
        self._ttl_set_at = now
        self.events.emit(ev.STORE_TTL_CHANGED, previous=previous, ttl=ttl)

    def set_price(self, message_kind: str, price: int, valid_from: int) -> None:
        self._require_owned()
        if not isinstance(message_kind, str) or not message_kind:
            raise ValueStoreError("message_kind must be a non-empty string")
        _require_uint(price, "price")
        _require_uint(valid_from, "valid_from")
        now = int(self.clock())
        notice = self.notice_window(now)
        if valid_from < now + notice:
            raise NoticeWindowError(
                f"valid_from {valid_from} gives less than {notice}s notice (now={now})"
            )

        schedule = self._prices.setdefault(message_kind, [])
        if any(vf == valid_from for vf, _ in schedule):
            raise ValueStoreError(f"{message_kind} already has a price scheduled at {valid_from}")
        bisect.insort(schedule, (valid_from, price))
        self.events.emit(ev.STORE_PRICE_SET, message_kind=message_kind, price=price, valid_from=valid_from)

    def revert_price(self, message_kind: str, price: int, valid_from: int) -> None:
        self._require_owned()
        schedule = self._prices.get(message_kind, [])
        entry = (valid_from, price)
        if entry not in schedule:
            raise ValueStoreError(f"no {message_kind} price {price} scheduled at {valid_from}")
        if valid_from <= int(self.clock()):
            raise ValueStoreError(f"{message_kind} price at {valid_from} is already in force")

        schedule.remove(entry)
        self.events.emit(ev.STORE_PRICE_REVERTED, message_kind=message_kind, price=price, valid_from=valid_from)

    def transfer_ownership(self, new_owner: str) -> None:
        self._require_owned()
        previous = self.owner
        self.owner = normalize_address(new_owner)
        self.events.emit(ev.STORE_OWNERSHIP_TRANSFERRED, previous=previous, owner=self.owner)

    def renounce_ownership(self) -> None:
        self._require_owned()
        previous = self.owner
        self.owner = None
        self._renounced = True
        self.events.emit(ev.STORE_OWNERSHIP_TRANSFERRED, previous=previous, owner=None)

    # ------------------------
    # Snapshot
    # ------------------------
    def to_state(self) -> Dict[str, Any]:
        return {
            "ttl": self._ttl,
            "ttl_set_at": self._ttl_set_at,
            "previous_ttl": self._previous_ttl,
            "owner": self.owner,
            "renounced": self._renounced,
            "prices": {k: [list(e) for e in v] for k, v in self._prices.items()},
        }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        *,
        clock: Optional[Callable[[], int]] = None,
        events: Optional[EventLog] = None,
    ) -> "InMemoryValueStore":
        store = cls(int(state["ttl"]), state.get("owner"), clock=clock, events=events)
        store._ttl_set_at = int(state.get("ttl_set_at", store._ttl_set_at))
        prev = state.get("previous_ttl")
        store._previous_ttl = int(prev) if prev is not None else None
        store._renounced = bool(state.get("renounced", False))
        store._prices = {
            str(k): sorted((int(vf), int(p)) for vf, p in v)
            for k, v in (state.get("prices") or {}).items()
        }
        return store
