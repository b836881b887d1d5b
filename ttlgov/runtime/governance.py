from __future__ import annotations

"""
SimpleGovernance:
- Proposal registry keyed by content-derived 32-byte identifiers
- One vote per governor per proposal, accepted while now < expiry
- Threshold evaluation: votes * 100 >= governors * percentage
- Self-amendment (governor roster, threshold, decline) through its own
  proposals, using the same identifier scheme as any external action

Proposal records are permanent. A declined proposal stops accepting votes
but keeps its tally, so a proposal that already cleared the threshold
stays valid after decline.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..security.permissions import require_role
from . import events as ev
from . import proposal_ids as ids
from .errors import (
    AlreadyExecuted,
    AlreadyExists,
    AlreadyVoted,
    ConfigError,
    GovernanceError,
    InvalidDeadline,
    ProposalNotFound,
    ProposalNotValid,
    VotingClosed,
)
from .events import EventLog
from .proposal_ids import ProposalIdLike, parse_proposal_id, to_hex
from .roles import Role, RoleRoster

log = logging.getLogger(__name__)

Clock = Callable[[], int]


def _now() -> int:
    return int(time.time())


def check_percentage(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > 100:
        raise ConfigError(f"{name} must be within 0..100, got {value}")
    return value


def evaluate_threshold(vote_count: int, governor_count: int, percentage: int) -> bool:
    """
    True iff vote_count / governor_count >= percentage / 100.

    Cross-multiplied so every observer gets the same answer without
    rounding. percentage 0 always passes; 100 requires unanimity.
    """
    return vote_count * 100 >= governor_count * percentage


# ---------------------------------------------------------------------------
# Proposal registry
# ---------------------------------------------------------------------------


@dataclass
class ProposalRecord:
    expiry: int
    vote_count: int = 0
    voters: Set[str] = field(default_factory=set)
    declined: bool = False

    def accepts_votes(self, now: int) -> bool:
        return not self.declined and now < self.expiry

    def to_state(self) -> Dict[str, Any]:
        return {
            "expiry": self.expiry,
            "vote_count": self.vote_count,
            "voters": sorted(self.voters),
            "declined": self.declined,
        }

    @classmethod
    def from_state(cls, raw: Dict[str, Any]) -> "ProposalRecord":
        voters = set(raw.get("voters", []))
        count = int(raw.get("vote_count", len(voters)))
        if count != len(voters):
            raise ConfigError(f"vote_count {count} does not match {len(voters)} recorded voters")
        return cls(
            expiry=int(raw["expiry"]),
            vote_count=count,
            voters=voters,
            declined=bool(raw.get("declined", False)),
        )


class ProposalRegistry:
    """Storage for proposal records. Records are created once and never removed."""

    def __init__(self) -> None:
        self._records: Dict[bytes, ProposalRecord] = {}

    def __contains__(self, pid: object) -> bool:
        return isinstance(pid, (bytes, bytearray)) and bytes(pid) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, pid: bytes) -> Optional[ProposalRecord]:
        return self._records.get(pid)

    def require(self, pid: bytes) -> ProposalRecord:
        rec = self._records.get(pid)
        if rec is None:
            raise ProposalNotFound(f"proposal {to_hex(pid)} not found")
        return rec

    def create(self, pid: bytes, expiry: int) -> ProposalRecord:
        if pid in self._records:
            raise AlreadyExists(f"proposal {to_hex(pid)} already exists")
        rec = ProposalRecord(expiry=int(expiry))
        self._records[pid] = rec
        return rec

    def to_state(self) -> Dict[str, Any]:
        return {to_hex(pid): rec.to_state() for pid, rec in self._records.items()}

    @classmethod
    def from_state(cls, raw: Dict[str, Any]) -> "ProposalRegistry":
        reg = cls()
        for pid_hex, rec in (raw or {}).items():
            reg._records[parse_proposal_id(pid_hex)] = ProposalRecord.from_state(rec)
        return reg


# ---------------------------------------------------------------------------
# Governance engine
# ---------------------------------------------------------------------------


class SimpleGovernance:
    def __init__(
        self,
        governors: Iterable[str] = (),
        threshold_percentage: int = 50,
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
        max_voting_window_sec: Optional[int] = None,
    ):
        self._threshold = check_percentage(threshold_percentage, "threshold_percentage")
        if max_voting_window_sec is not None and int(max_voting_window_sec) <= 0:
            raise ConfigError("max_voting_window_sec must be positive when set")
        self.max_voting_window_sec = max_voting_window_sec
        self.clock: Clock = clock or _now
        self.events = events if events is not None else EventLog(self.clock)
        self.roster = RoleRoster(Role.GOVERNOR, governors)
        self.registry = ProposalRegistry()
        self._executed: Set[bytes] = set()

    # ------------------------
    # Reads
    # ------------------------
    @property
    def threshold_percentage(self) -> int:
        return self._threshold

    @property
    def governor_count(self) -> int:
        return self.roster.count

    def is_governor(self, account: str) -> bool:
        return self.roster.is_member(account)

    def governors(self) -> List[str]:
        return self.roster.members()

    def proposal(self, proposal_id: ProposalIdLike) -> Optional[ProposalRecord]:
        return self.registry.get(parse_proposal_id(proposal_id))

    def evaluate_proposal(self, proposal_id: ProposalIdLike) -> bool:
        """
        Pure read. Unregistered identifiers are never valid, even at a
        threshold of 0.
        """
        rec = self.registry.get(parse_proposal_id(proposal_id))
        if rec is None:
            return False
        return evaluate_threshold(rec.vote_count, self.roster.count, self._threshold)

    def require_valid(self, proposal_id: ProposalIdLike, *, action: str = "unknown") -> bytes:
        pid = parse_proposal_id(proposal_id)
        if not self.evaluate_proposal(pid):
            raise ProposalNotValid(
                f"'{action}' requires a valid proposal; {to_hex(pid)} is missing or below threshold",
                detail={"proposal_id": to_hex(pid), "action": action},
            )
        return pid

    # ------------------------
    # Proposal lifecycle
    # ------------------------
    def _check_registration(self, caller: str, proposal_id: ProposalIdLike, expiry: int) -> bytes:
        require_role(self.roster, caller, action="register_proposal")
        pid = parse_proposal_id(proposal_id)
        if pid in self.registry:
            raise AlreadyExists(f"proposal {to_hex(pid)} already exists")

        now = int(self.clock())
        if expiry <= now:
            raise InvalidDeadline(f"expiry {expiry} must lie after now={now}")
        if self.max_voting_window_sec is not None and expiry > now + int(self.max_voting_window_sec):
            raise InvalidDeadline(
                f"expiry {expiry} exceeds the {self.max_voting_window_sec}s voting window"
            )
        return pid

    def register_proposal(self, caller: str, proposal_id: ProposalIdLike, expiry: int) -> ProposalRecord:
        expiry = int(expiry)
        try:
            pid = self._check_registration(caller, proposal_id, expiry)
        except GovernanceError as e:
            log.warning("rejected register_proposal by %s: %s", caller, e)
            raise

        rec = self.registry.create(pid, expiry)
        self.events.emit(ev.PROPOSAL_CREATED, proposal_id=to_hex(pid), expiry=expiry, proposer=caller)
        log.info("proposal %s created by %s (expiry=%d)", to_hex(pid), caller, expiry)
        return rec

    def _check_vote(self, caller: str, proposal_id: ProposalIdLike) -> Tuple[bytes, ProposalRecord, str]:
        require_role(self.roster, caller, action="cast_vote")
        pid = parse_proposal_id(proposal_id)
        rec = self.registry.require(pid)
        voter = ids.normalize_address(caller)
        if voter in rec.voters:
            raise AlreadyVoted(f"{voter} already voted on {to_hex(pid)}")
        if rec.declined:
            raise VotingClosed(f"proposal {to_hex(pid)} was declined")
        now = int(self.clock())
        if now >= rec.expiry:
            raise VotingClosed(f"voting on {to_hex(pid)} ended at {rec.expiry}")
        return pid, rec, voter

    def cast_vote(self, caller: str, proposal_id: ProposalIdLike) -> ProposalRecord:
        try:
            pid, rec, voter = self._check_vote(caller, proposal_id)
        except GovernanceError as e:
            log.warning("rejected cast_vote by %s: %s", caller, e)
            raise

        rec.voters.add(voter)
        rec.vote_count += 1
        self.events.emit(ev.VOTE_CAST, proposal_id=to_hex(pid), voter=voter, vote_count=rec.vote_count)
        log.info("vote on %s by %s (count=%d)", to_hex(pid), voter, rec.vote_count)
        return rec

    def consume(self, proposal_id: bytes, *, action: str) -> bytes:
        """Validity + replay check for governance's own actions. Does not mark."""
        try:
            pid = self.require_valid(proposal_id, action=action)
            if pid in self._executed:
                raise AlreadyExecuted(f"proposal {to_hex(pid)} already executed")
        except GovernanceError as e:
            log.warning("rejected %s: %s", action, e)
            raise
        return pid

    # ------------------------
    # Self-amending actions
    # ------------------------
    def decline_proposal(self, target: ProposalIdLike, nonce: int) -> ProposalRecord:
        target_pid = parse_proposal_id(target)
        gate = self.consume(ids.decline_id(target_pid, nonce), action="decline_proposal")
        rec = self.registry.require(target_pid)
        if rec.declined:
            raise VotingClosed(f"proposal {to_hex(target_pid)} already declined")

        rec.declined = True
        self._executed.add(gate)
        self.events.emit(ev.PROPOSAL_DECLINED, proposal_id=to_hex(target_pid), authorized_by=to_hex(gate))
        log.info("proposal %s declined", to_hex(target_pid))
        return rec

    def add_governor(self, account: str, nonce: int) -> str:
        gate = self.consume(ids.add_governor_id(account, nonce), action="add_governor")
        key = self.roster.add(account)
        self._executed.add(gate)
        self.events.emit(ev.GOVERNOR_ADDED, account=key, governor_count=self.roster.count)
        log.info("governor added: %s (count=%d)", key, self.roster.count)
        return key

    def remove_governor(self, account: str, nonce: int) -> str:
        gate = self.consume(ids.remove_governor_id(account, nonce), action="remove_governor")
        key = self.roster.remove(account)
        self._executed.add(gate)
        self.events.emit(ev.GOVERNOR_REMOVED, account=key, governor_count=self.roster.count)
        log.info("governor removed: %s (count=%d)", key, self.roster.count)
        return key

    def change_threshold_percentage(self, percentage: int, nonce: int) -> int:
        check_percentage(percentage, "threshold_percentage")
        gate = self.consume(ids.threshold_change_id(percentage, nonce), action="change_threshold_percentage")
        previous = self._threshold
        self._threshold = percentage
        self._executed.add(gate)
        self.events.emit(ev.THRESHOLD_CHANGED, previous=previous, threshold_percentage=percentage)
        log.info("threshold percentage %d -> %d", previous, percentage)
        return percentage

    # ------------------------
    # Snapshot
    # ------------------------
    def is_executed(self, proposal_id: ProposalIdLike) -> bool:
        return parse_proposal_id(proposal_id) in self._executed

    def to_state(self) -> Dict[str, Any]:
        return {
            "threshold_percentage": self._threshold,
            "max_voting_window_sec": self.max_voting_window_sec,
            "governors": self.roster.to_state(),
            "proposals": self.registry.to_state(),
            "executed": sorted(to_hex(p) for p in self._executed),
        }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
    ) -> "SimpleGovernance":
        gov = cls(
            (),
            check_percentage(state.get("threshold_percentage", 50), "threshold_percentage"),
            clock=clock,
            events=events,
            max_voting_window_sec=state.get("max_voting_window_sec"),
        )
        gov.roster = RoleRoster.from_state(state.get("governors", {}), Role.GOVERNOR)
        gov.registry = ProposalRegistry.from_state(state.get("proposals", {}))
        gov._executed = {parse_proposal_id(p) for p in state.get("executed", [])}
        return gov
