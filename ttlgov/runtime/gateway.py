from __future__ import annotations

"""
AuthorizationGateway: two privilege tiers in front of the value store.

Leader tier (fast, bounded, no proposal):
  - set_price
  - change_ttl_within_bounds: T' * 100 within T * (100 +/- P)

Governor tier (slow, supermajority): the gateway recomputes the canonical
identifier for the exact action + arguments and asks SimpleGovernance
whether that proposal is valid:
  - change_ttl               CNTWP
  - revert_price             CRMP (argHash-bound)
  - transfer_ownership       CTO
  - renounce_ownership       CRO
  - add_leader / remove_leader   AL / RL
  - change_bound_percentage  CMTCP

The leader roster and the bound percentage are only reachable through the
governor tier, so a leader can never widen its own privileges.

Every call either completes (store call forwarded, proposal marked
executed, event emitted) or raises with nothing changed.
"""

import hmac
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from ..security.permissions import require_role
from . import events as ev
from . import proposal_ids as ids
from .errors import AlreadyExecuted, ArgumentMismatchError, GovernanceError, OutOfBounds
from .events import EventLog
from .governance import SimpleGovernance, check_percentage
from .proposal_ids import ProposalIdLike, parse_bytes32, parse_proposal_id, to_hex
from .roles import Role, RoleRoster
from .value_store import ValueStoreClient

log = logging.getLogger(__name__)


def check_ttl_bounds(current_ttl: int, requested_ttl: int, bound_percentage: int) -> bool:
    """
    (100 - P) * T <= 100 * T' <= (100 + P) * T, cross-multiplied so the
    exact +/-P% boundary is accepted and nothing is lost to rounding.
    """
    upper_ok = requested_ttl * 100 <= current_ttl * (100 + bound_percentage)
    lower_ok = requested_ttl * 100 >= current_ttl * (100 - bound_percentage)
    return upper_ok and lower_ok


class AuthorizationGateway:
    def __init__(
        self,
        governance: SimpleGovernance,
        store: ValueStoreClient,
        leaders: Iterable[str] = (),
        bound_percentage: int = 10,
        *,
        events: Optional[EventLog] = None,
    ):
        self.governance = governance
        self.store = store
        self.events = events if events is not None else governance.events
        self.leaders = RoleRoster(Role.LEADER, leaders)
        self._bound = check_percentage(bound_percentage, "bound_percentage")
        self._executed: Set[bytes] = set()

    # ------------------------
    # Reads
    # ------------------------
    @property
    def bound_percentage(self) -> int:
        return self._bound

    @property
    def leader_count(self) -> int:
        return self.leaders.count

    def is_leader(self, account: str) -> bool:
        return self.leaders.is_member(account)

    def is_executed(self, proposal_id: ProposalIdLike) -> bool:
        return parse_proposal_id(proposal_id) in self._executed

    def _authorize(self, proposal_id: bytes, *, action: str) -> bytes:
        try:
            pid = self.governance.require_valid(proposal_id, action=action)
            if pid in self._executed:
                raise AlreadyExecuted(f"proposal {to_hex(pid)} already executed")
        except GovernanceError as e:
            log.warning("rejected %s: %s", action, e)
            raise
        return pid

    def _complete(self, pid: bytes, name: str, **data: Any) -> None:
        self._executed.add(pid)
        self.events.emit(name, authorized_by=to_hex(pid), **data)

    # ------------------------
    # Leader tier
    # ------------------------
    def set_price(self, caller: str, message_kind: str, price: int, valid_from: int) -> None:
        require_role(self.leaders, caller, action="set_price")
        self.store.set_price(message_kind, price, valid_from)
        self.events.emit(ev.PRICE_SET, leader=caller, message_kind=message_kind, price=price, valid_from=valid_from)
        log.info("leader %s set %s price %d from %d", caller, message_kind, price, valid_from)

    def change_ttl_within_bounds(self, caller: str, new_ttl: int) -> int:
        require_role(self.leaders, caller, action="change_ttl_within_bounds")
        current = self.store.get_ttl()
        if not check_ttl_bounds(current, new_ttl, self._bound):
            log.warning("leader %s ttl %d -> %d outside +/-%d%%", caller, current, new_ttl, self._bound)
            raise OutOfBounds(
                f"ttl {new_ttl} is outside +/-{self._bound}% of current ttl {current}",
                detail={"current_ttl": current, "requested_ttl": new_ttl, "bound_percentage": self._bound},
            )
        self.store.set_ttl(new_ttl)
        self.events.emit(ev.TTL_CHANGED, leader=caller, previous=current, ttl=new_ttl)
        log.info("leader %s changed ttl %d -> %d", caller, current, new_ttl)
        return new_ttl

    # ------------------------
    # Governor tier
    # ------------------------
    def change_ttl(self, new_ttl: int, nonce: int) -> int:
        pid = self._authorize(ids.ttl_change_id(new_ttl, nonce), action="change_ttl")
        current = self.store.get_ttl()
        self.store.set_ttl(new_ttl)
        self._complete(pid, ev.TTL_CHANGED, previous=current, ttl=new_ttl)
        log.info("ttl changed %d -> %d by proposal %s", current, new_ttl, to_hex(pid))
        return new_ttl

    def revert_price(
        self,
        message_kind: str,
        price: int,
        valid_from: int,
        arg_hash: ProposalIdLike,
        nonce: int,
    ) -> None:
        try:
            supplied = parse_bytes32(arg_hash, "arg_hash")
        except (TypeError, ValueError) as e:
            log.warning("revert_price malformed arg_hash for %s: %s", message_kind, e)
            raise ArgumentMismatchError(f"malformed arg_hash: {e}", detail={"supplied": repr(arg_hash)}) from e
        expected = ids.price_args_hash(message_kind, price, valid_from)
        if not hmac.compare_digest(supplied, expected):
            log.warning("revert_price argument hash mismatch for %s", message_kind)
            raise ArgumentMismatchError(
                "arg_hash does not match hash(message_kind, price, valid_from)",
                detail={"supplied": to_hex(supplied), "expected": to_hex(expected)},
            )
        pid = self._authorize(ids.revert_price_id(supplied, nonce), action="revert_price")
        self.store.revert_price(message_kind, price, valid_from)
        self._complete(
            pid,
            ev.PRICE_REVERTED,
            message_kind=message_kind,
            price=price,
            valid_from=valid_from,
            arg_hash=to_hex(supplied),
        )
        log.info("reverted %s price %d at %d", message_kind, price, valid_from)

    def transfer_ownership(self, new_owner: str, nonce: int) -> str:
        owner = ids.normalize_address(new_owner)
        pid = self._authorize(ids.transfer_ownership_id(owner, nonce), action="transfer_ownership")
        self.store.transfer_ownership(owner)
        self._complete(pid, ev.OWNERSHIP_TRANSFERRED, owner=owner)
        log.info("store ownership transferred to %s", owner)
        return owner

    def renounce_ownership(self, nonce: int) -> None:
        pid = self._authorize(ids.renounce_ownership_id(nonce), action="renounce_ownership")
        self.store.renounce_ownership()
        self._complete(pid, ev.OWNERSHIP_RENOUNCED)
        log.info("store ownership renounced")

    def add_leader(self, account: str, nonce: int) -> str:
        pid = self._authorize(ids.add_leader_id(account, nonce), action="add_leader")
        key = self.leaders.add(account)
        self._complete(pid, ev.LEADER_ADDED, account=key, leader_count=self.leaders.count)
        log.info("leader added: %s", key)
        return key

    def remove_leader(self, account: str, nonce: int) -> str:
        pid = self._authorize(ids.remove_leader_id(account, nonce), action="remove_leader")
        key = self.leaders.remove(account)
        self._complete(pid, ev.LEADER_REMOVED, account=key, leader_count=self.leaders.count)
        log.info("leader removed: %s", key)
        return key

    def change_bound_percentage(self, percentage: int, nonce: int) -> int:
        check_percentage(percentage, "bound_percentage")
        pid = self._authorize(ids.bound_change_id(percentage, nonce), action="change_bound_percentage")
        previous = self._bound
        self._bound = percentage
        self._complete(pid, ev.BOUND_PERCENTAGE_CHANGED, previous=previous, bound_percentage=percentage)
        log.info("bound percentage %d -> %d", previous, percentage)
        return percentage

    # ------------------------
    # Snapshot
    # ------------------------
    def to_state(self) -> Dict[str, Any]:
        return {
            "bound_percentage": self._bound,
            "leaders": self.leaders.to_state(),
            "executed": sorted(to_hex(p) for p in self._executed),
        }

    def restore_state(self, state: Dict[str, Any]) -> None:
        self._bound = check_percentage(state.get("bound_percentage", self._bound), "bound_percentage")
        self.leaders = RoleRoster.from_state(state.get("leaders", {}), Role.LEADER)
        self._executed = {parse_proposal_id(p) for p in state.get("executed", [])}

    def executed_ids(self) -> List[str]:
        return sorted(to_hex(p) for p in self._executed)
