import json

import pytest

from ttlgov.config import build_config
from ttlgov.executor import GovernanceExecutor
from ttlgov.runtime import proposal_ids as ids
from ttlgov.runtime.atomic_store import SNAPSHOT_VERSION, AtomicStateStore
from ttlgov.runtime.errors import AlreadyExecuted, AlreadyVoted, ConfigError

from conftest import GOVERNORS, LEADER, T0, FakeClock


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def executor(state_path):
    cfg = build_config(
        {
            "governance": {"governors": GOVERNORS, "threshold_percentage": 75},
            "gateway": {"leaders": [LEADER], "bound_percentage": 10},
            "value_store": {"initial_ttl": 1000},
        }
    )
    return GovernanceExecutor(cfg, clock=FakeClock(), state_path=str(state_path))


def _approve(ex, pid, voters=("alice", "bob", "carol")):
    ex.governance.register_proposal(voters[0], pid, ex.clock() + 3600)
    for v in voters:
        ex.governance.cast_vote(v, pid)
    return pid


# ============================================================
# AtomicStateStore
# ============================================================

def test_save_and_load(tmp_path):
    st = AtomicStateStore(tmp_path / "s.json")
    st.save({"a": 1})

    assert st.load() == {"a": 1, "version": SNAPSHOT_VERSION}
    assert not st.interrupted()


def test_backups_rotate(tmp_path):
    st = AtomicStateStore(tmp_path / "s.json", keep_backups=2)
    for i in range(4):
        st.save({"n": i})

    assert json.loads(st.backup_path(1).read_text())["n"] == 2
    assert json.loads(st.backup_path(2).read_text())["n"] == 1
    assert not st.backup_path(3).exists()


def test_corrupt_primary_falls_back_to_backup(tmp_path):
    st = AtomicStateStore(tmp_path / "s.json")
    st.save({"n": 1})
    st.save({"n": 2})
    st.path.write_text("{ not json")

    assert st.load()["n"] == 1


def test_version_mismatch_is_skipped(tmp_path):
    st = AtomicStateStore(tmp_path / "s.json")
    st.save({"n": 1})
    st.save({"n": 2, "version": SNAPSHOT_VERSION + 1})

    assert st.load()["n"] == 1


def test_interrupted_save_detected(tmp_path):
    st = AtomicStateStore(tmp_path / "s.json")
    st.save({"n": 1})
    st.journal_path.write_bytes(b"1")

    assert st.interrupted()
    assert st.load()["n"] == 1


def test_missing_state_loads_nothing(tmp_path):
    assert AtomicStateStore(tmp_path / "nope.json").load() is None


# ============================================================
# Executor snapshot / restore
# ============================================================

def test_fresh_executor_uses_config(executor):
    assert executor.governance.governors() == sorted(GOVERNORS)
    assert executor.governance.threshold_percentage == 75
    assert executor.gateway.is_leader(LEADER)
    assert executor.store.get_ttl() == 1000
    assert executor.store.owner == "gateway"
    assert executor.load() is False


def test_restart_keeps_everything(executor, state_path):
    gov = executor.governance
    # four of four, so the proposal still passes once erin joins
    _approve(executor, ids.add_leader_id("lena", 1), voters=tuple(GOVERNORS))
    executor.gateway.add_leader("lena", 1)
    _approve(executor, ids.add_governor_id("erin", 1))
    gov.add_governor("erin", 1)
    open_pid = ids.ttl_change_id(1200, 1)
    gov.register_proposal("alice", open_pid, T0 + 60)
    gov.cast_vote("bob", open_pid)
    executor.gateway.set_price(LEADER, "sms", 7, T0 + 1000)
    executor.save()

    ex2 = GovernanceExecutor(executor.config, clock=executor.clock, state_path=str(state_path))
    assert ex2.load() is True

    assert ex2.gateway.is_leader("lena")
    assert ex2.governance.is_governor("erin")
    assert ex2.store.schedule("sms") == [(T0 + 1000, 7)]
    assert len(ex2.events) == len(executor.events)
    with pytest.raises(AlreadyExecuted):
        ex2.gateway.add_leader("lena", 1)
    with pytest.raises(AlreadyVoted):
        ex2.governance.cast_vote("bob", open_pid)

    # components share one event log after restore
    before = len(ex2.events)
    ex2.governance.cast_vote("carol", open_pid)
    assert len(ex2.events) == before + 1
    assert ex2.events.last().seq == before + 1


def test_snapshot_layout(executor):
    snap = executor.snapshot()
    assert set(snap) == {"version", "governance", "gateway", "value_store", "events"}
    assert snap["governance"]["threshold_percentage"] == 75
    assert snap["gateway"]["leaders"]["members"] == [LEADER]


def test_reset_discards_in_memory_changes(executor):
    _approve(executor, ids.add_leader_id("lena", 1))
    executor.gateway.add_leader("lena", 1)
    executor.reset()
    assert not executor.gateway.is_leader("lena")
    assert len(executor.events) == 0


@pytest.mark.parametrize("drop", ["governance", "value_store"])
def test_restore_rejects_missing_section(executor, drop):
    state = executor.snapshot()
    del state[drop]
    governance = executor.governance
    with pytest.raises(ConfigError):
        executor.restore(state)
    assert executor.governance is governance


def test_restore_rejects_incomplete_proposal_record(executor):
    _approve(executor, ids.add_leader_id("lena", 1))
    state = executor.snapshot()
    for rec in state["governance"]["proposals"].values():
        del rec["expiry"]
    with pytest.raises(ConfigError):
        executor.restore(state)


def test_load_of_incomplete_snapshot_raises(executor, state_path):
    state_path.write_text("{}")
    with pytest.raises(ConfigError):
        executor.load()
