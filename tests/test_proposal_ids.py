import pytest

from ttlgov.runtime import proposal_ids as ids
from ttlgov.runtime.proposal_ids import Tag


def test_identifier_is_32_bytes_and_deterministic():
    a = ids.add_governor_id("erin", 1)
    b = ids.add_governor_id("erin", 1)
    assert len(a) == 32
    assert a == b


def test_different_nonces_give_independent_identifiers():
    seen = {ids.ttl_change_id(1200, n) for n in range(50)}
    assert len(seen) == 50


def test_tag_namespaces_actions_with_same_arguments():
    account = "0x" + "ab" * 20
    variants = {
        ids.add_governor_id(account, 7),
        ids.remove_governor_id(account, 7),
        ids.add_leader_id(account, 7),
        ids.remove_leader_id(account, 7),
        ids.transfer_ownership_id(account, 7),
    }
    assert len(variants) == 5


def test_threshold_and_bound_changes_never_collide():
    assert ids.threshold_change_id(60, 1) != ids.bound_change_id(60, 1)


def test_every_action_kind_has_its_own_tag():
    values = [t.value for t in Tag]
    assert len(values) == len(set(values))
    assert Tag.REMOVE_LEADER.value != Tag.ADD_LEADER.value
    assert Tag.REMOVE_GOVERNOR.value != Tag.ADD_GOVERNOR.value


def test_hex_address_casing_does_not_change_identifier():
    lower = "0x" + "ab" * 20
    upper = "0x" + "AB" * 20
    assert ids.add_leader_id(lower, 3) == ids.add_leader_id(upper, 3)
    assert ids.normalize_address("  " + upper + " ") == lower


def test_non_hex_addresses_are_kept_verbatim():
    assert ids.normalize_address("Alice") == "Alice"
    assert ids.add_governor_id("Alice", 1) != ids.add_governor_id("alice", 1)


def test_empty_address_rejected():
    with pytest.raises(ValueError):
        ids.normalize_address("   ")


def test_length_prefixes_keep_field_boundaries():
    assert ids.encode_str("a") + ids.encode_str("bc") != ids.encode_str("ab") + ids.encode_str("c")
    assert ids.proposal_id(Tag.ADD_GOVERNOR, b"\x01", 2) != ids.proposal_id(Tag.ADD_GOVERNOR, b"\x01\x00", 2)


def test_price_args_hash_binds_every_field():
    base = ids.price_args_hash("sms", 100, 5000)
    assert base != ids.price_args_hash("sms", 101, 5000)
    assert base != ids.price_args_hash("sms", 100, 5001)
    assert base != ids.price_args_hash("smt", 100, 5000)
    assert ids.revert_price_id(base, 1) == ids.revert_price_id(ids.to_hex(base), 1)


def test_parse_proposal_id_accepts_hex_forms():
    pid = ids.decline_id(ids.add_governor_id("erin", 1), 1)
    assert ids.parse_proposal_id(ids.to_hex(pid)) == pid
    assert ids.parse_proposal_id(pid.hex()) == pid
    assert ids.parse_proposal_id(bytearray(pid)) == pid


@pytest.mark.parametrize("bad", ["0x1234", "zz" * 32, b"\x00" * 31])
def test_parse_proposal_id_rejects_malformed(bad):
    with pytest.raises(ValueError):
        ids.parse_proposal_id(bad)


def test_negative_nonce_rejected():
    with pytest.raises(ValueError):
        ids.renounce_ownership_id(-1)
