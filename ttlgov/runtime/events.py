from __future__ import annotations

"""
Append-only notification log.

Readers of the value store follow this log to learn the authoritative
price / TTL and every governance change behind them. Entries are never
rewritten or dropped; `seq` is strictly increasing from 1.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)

# governance
PROPOSAL_CREATED = "ProposalCreated"
PROPOSAL_DECLINED = "ProposalDeclined"
VOTE_CAST = "VoteCast"
GOVERNOR_ADDED = "GovernorAdded"
GOVERNOR_REMOVED = "GovernorRemoved"
THRESHOLD_CHANGED = "ThresholdChanged"

# gateway
LEADER_ADDED = "LeaderAdded"
LEADER_REMOVED = "LeaderRemoved"
BOUND_PERCENTAGE_CHANGED = "BoundPercentageChanged"
PRICE_SET = "PriceSet"
TTL_CHANGED = "TTLChanged"
PRICE_REVERTED = "PriceReverted"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
OWNERSHIP_RENOUNCED = "OwnershipRenounced"

# value store
STORE_PRICE_SET = "StorePriceSet"
STORE_TTL_CHANGED = "StoreTTLChanged"
STORE_PRICE_REVERTED = "StorePriceReverted"
STORE_OWNERSHIP_TRANSFERRED = "StoreOwnershipTransferred"


class Event(BaseModel):
    seq: int
    name: str
    ts: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)


Subscriber = Callable[[Event], None]


class EventLog:
    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: int(time.time()))
        self._events: List[Event] = []
        self._subscribers: List[Subscriber] = []

    def emit(self, name: str, **data: Any) -> Event:
        ev = Event(seq=len(self._events) + 1, name=name, ts=int(self._clock()), data=data)
        self._events.append(ev)
        log.info("event %s #%d %s", name, ev.seq, data)
        # emitted after the state change: a failing subscriber must not undo it
        for cb in list(self._subscribers):
            try:
                cb(ev)
            except Exception:
                log.exception("subscriber %r failed on event %s #%d", cb, name, ev.seq)
        return ev

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def events(self, name: Optional[str] = None) -> List[Event]:
        if name is None:
            return list(self._events)
        return [e for e in self._events if e.name == name]

    def since(self, seq: int) -> List[Event]:
        return [e for e in self._events if e.seq > seq]

    def last(self) -> Optional[Event]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def to_state(self) -> List[Dict[str, Any]]:
        return [e.model_dump() for e in self._events]

    def load_state(self, entries: List[Dict[str, Any]]) -> None:
        restored = [Event(**e) for e in entries or []]
        for i, ev in enumerate(restored, start=1):
            if ev.seq != i:
                raise ValueError(f"event log gap: expected seq {i}, got {ev.seq}")
        self._events = restored
