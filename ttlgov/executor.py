from __future__ import annotations

"""
ttlgov executor

Wires one configuration into a working unit:

    EventLog  <- shared by every component
    InMemoryValueStore (owned by the gateway address)
    SimpleGovernance
    AuthorizationGateway(governance, store)

and persists / restores the whole unit through AtomicStateStore. This is
the object the CLI drives; library users can also build the components
directly.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .config import NodeConfig, build_config
from .runtime.atomic_store import SNAPSHOT_VERSION, AtomicStateStore
from .runtime.errors import ConfigError
from .runtime.events import EventLog
from .runtime.gateway import AuthorizationGateway
from .runtime.governance import SimpleGovernance
from .runtime.value_store import InMemoryValueStore

log = logging.getLogger(__name__)

_REQUIRED_SECTIONS = ("governance", "value_store")


class GovernanceExecutor:
    def __init__(
        self,
        config: Optional[NodeConfig] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        state_path: Optional[str] = None,
    ):
        self.config = config or build_config()
        self.clock = clock or (lambda: int(time.time()))
        self.state_store = AtomicStateStore(
            state_path or self.config.state.path,
            keep_backups=self.config.state.keep_backups,
        )
        self._build_fresh()

    def _build_fresh(self) -> None:
        cfg = self.config
        self.events = EventLog(self.clock)
        self.store = InMemoryValueStore(
            cfg.value_store.initial_ttl,
            cfg.gateway.address,
            clock=self.clock,
            events=self.events,
        )
        self.governance = SimpleGovernance(
            cfg.governance.governors,
            cfg.governance.threshold_percentage,
            clock=self.clock,
            events=self.events,
            max_voting_window_sec=cfg.governance.max_voting_window_sec,
        )
        self.gateway = AuthorizationGateway(
            self.governance,
            self.store,
            cfg.gateway.leaders,
            cfg.gateway.bound_percentage,
            events=self.events,
        )

    # ------------------------
    # Persistence
    # ------------------------
    def snapshot(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "governance": self.governance.to_state(),
            "gateway": self.gateway.to_state(),
            "value_store": self.store.to_state(),
            "events": self.events.to_state(),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        """All-or-nothing: a malformed snapshot raises ConfigError and leaves the current unit in place."""
        missing = [k for k in _REQUIRED_SECTIONS if not isinstance(state.get(k), dict)]
        if missing:
            raise ConfigError(f"snapshot is missing section(s): {', '.join(missing)}")
        try:
            events = EventLog(self.clock)
            events.load_state(state.get("events", []))
            store = InMemoryValueStore.from_state(state["value_store"], clock=self.clock, events=events)
            governance = SimpleGovernance.from_state(state["governance"], clock=self.clock, events=events)
            gateway = AuthorizationGateway(governance, store, events=events)
            gateway.restore_state(state.get("gateway", {}))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"corrupt snapshot: {e!r}") from e

        self.events, self.store, self.governance, self.gateway = events, store, governance, gateway

    def load(self) -> bool:
        """Restore from disk. Returns False (fresh state kept) if nothing is stored."""
        state = self.state_store.load()
        if state is None:
            log.info("no snapshot at %s; starting from config", self.state_store.path)
            return False
        self.restore(state)
        log.info("restored snapshot %s (%d events)", self.state_store.path, len(self.events))
        return True

    def save(self) -> None:
        self.state_store.save(self.snapshot())

    def reset(self) -> None:
        self._build_fresh()
