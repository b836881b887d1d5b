import pytest

from ttlgov.runtime.events import EventLog
from ttlgov.runtime.gateway import AuthorizationGateway
from ttlgov.runtime.governance import SimpleGovernance
from ttlgov.runtime.value_store import InMemoryValueStore

T0 = 1_700_000_000
GOVERNORS = ["alice", "bob", "carol", "dave"]
LEADER = "leo"


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events(clock):
    return EventLog(clock)


@pytest.fixture
def governance(clock, events):
    """4 governors at 75%: three votes pass a proposal, two do not."""
    return SimpleGovernance(GOVERNORS, 75, clock=clock, events=events)


@pytest.fixture
def store(clock, events):
    return InMemoryValueStore(1000, "gateway", clock=clock, events=events)


@pytest.fixture
def gateway(governance, store, events):
    return AuthorizationGateway(governance, store, [LEADER], 10, events=events)


@pytest.fixture
def approve(governance, clock):
    """Register a proposal id and have `voters` (default: 3 of 4) vote for it."""

    def _approve(pid, voters=("alice", "bob", "carol"), duration=3600):
        governance.register_proposal(voters[0] if voters else "alice", pid, clock() + duration)
        for v in voters:
            governance.cast_vote(v, pid)
        return pid

    return _approve
