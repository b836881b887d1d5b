import pytest

from ttlgov.runtime import events as ev
from ttlgov.runtime.value_store import (
    InMemoryValueStore,
    NoticeWindowError,
    TTLCooldownError,
    ValueStoreError,
)

from conftest import T0


def test_ttl_change_waits_for_current_ttl(store, clock):
    clock.advance(999)
    with pytest.raises(TTLCooldownError):
        store.set_ttl(500)

    clock.advance(1)
    store.set_ttl(500)
    assert store.get_ttl() == 500


@pytest.mark.parametrize("ttl", [0, -5, True])
def test_ttl_must_be_positive_int(store, clock, ttl):
    clock.advance(1000)
    with pytest.raises(ValueStoreError):
        store.set_ttl(ttl)


def test_price_needs_one_ttl_of_notice(store):
    with pytest.raises(NoticeWindowError):
        store.set_price("sms", 10, T0 + 999)
    store.set_price("sms", 10, T0 + 1000)
    assert store.schedule("sms") == [(T0 + 1000, 10)]


def test_notice_stays_long_after_ttl_decrease(store, clock):
    clock.advance(1000)
    store.set_ttl(200)
    assert store.notice_window() == 1000

    with pytest.raises(NoticeWindowError):
        store.set_price("sms", 10, clock() + 999)

    clock.advance(1000)
    assert store.notice_window() == 200
    store.set_price("sms", 10, clock() + 200)


def test_notice_follows_ttl_increase_immediately(store, clock):
    clock.advance(1000)
    store.set_ttl(5000)
    assert store.notice_window() == 5000
    with pytest.raises(NoticeWindowError):
        store.set_price("sms", 10, clock() + 4999)


def test_get_price_follows_schedule(store, clock):
    store.set_price("sms", 10, T0 + 1000)
    store.set_price("sms", 20, T0 + 3000)
    store.set_price("mms", 99, T0 + 1500)

    assert store.get_price("sms") is None
    assert store.get_price("sms", at=T0 + 1000) == 10
    assert store.get_price("sms", at=T0 + 2999) == 10
    assert store.get_price("sms", at=T0 + 3000) == 20
    assert store.get_price("mms", at=T0 + 3000) == 99
    assert store.get_price("fax", at=T0 + 3000) is None


def test_duplicate_valid_from_rejected(store):
    store.set_price("sms", 10, T0 + 1000)
    with pytest.raises(ValueStoreError):
        store.set_price("sms", 11, T0 + 1000)


def test_revert_only_before_effect(store, clock, events):
    store.set_price("sms", 10, T0 + 1000)
    store.set_price("sms", 20, T0 + 2000)

    clock.advance(1000)
    with pytest.raises(ValueStoreError):
        store.revert_price("sms", 10, T0 + 1000)

    store.revert_price("sms", 20, T0 + 2000)
    assert store.schedule("sms") == [(T0 + 1000, 10)]
    assert len(events.events(ev.STORE_PRICE_REVERTED)) == 1


def test_revert_unknown_entry(store):
    store.set_price("sms", 10, T0 + 1000)
    with pytest.raises(ValueStoreError):
        store.revert_price("sms", 11, T0 + 1000)


def test_renounced_store_is_read_only(store, clock):
    store.set_price("sms", 10, T0 + 1000)
    store.renounce_ownership()

    assert store.renounced
    assert store.owner is None
    assert store.get_price("sms", at=T0 + 1000) == 10
    with pytest.raises(ValueStoreError):
        store.transfer_ownership("someone")
    with pytest.raises(ValueStoreError):
        store.revert_price("sms", 10, T0 + 1000)


def test_state_round_trip(store, clock):
    clock.advance(1000)
    store.set_ttl(400)
    store.set_price("sms", 10, clock() + 1000)
    store.transfer_ownership("0xABCDEF")

    restored = InMemoryValueStore.from_state(store.to_state(), clock=clock)
    assert restored.get_ttl() == 400
    assert restored.owner == "0xabcdef"
    assert restored.notice_window() == 1000
    assert restored.schedule("sms") == store.schedule("sms")
