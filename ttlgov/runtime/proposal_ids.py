from __future__ import annotations

"""
Proposal identifiers + canonical argument encoding.

Provides:
- Tag                        namespace per governed action kind
- proposal_id(tag, args, n)  32-byte identifier for (tag, args, nonce)
- price_args_hash(...)       argHash binding for the revert-price action
- one builder per action     so proposers and executors derive the same id

Encoding (all integers big-endian, fixed width):

    u16(len(tag)) || tag || u32(len(args)) || args || u256(nonce)

Arguments themselves are built from fixed-width integers and
length-prefixed strings, so two distinct argument tuples never share an
encoding. The digest is SHA3-256.
"""

import hashlib
from enum import Enum
from typing import Union

ID_LEN = 32

ProposalIdLike = Union[bytes, bytearray, str]


class Tag(str, Enum):
    # SimpleGovernance self-amending actions
    ADD_GOVERNOR = "AG"
    REMOVE_GOVERNOR = "RK"
    CHANGE_THRESHOLD = "CGPN"
    DECLINE_PROPOSAL = "DP"

    # AuthorizationGateway governor-tier actions
    CHANGE_TTL = "CNTWP"
    REVERT_PRICE = "CRMP"
    TRANSFER_OWNERSHIP = "CTO"
    RENOUNCE_OWNERSHIP = "CRO"
    ADD_LEADER = "AL"
    REMOVE_LEADER = "RL"
    CHANGE_BOUND = "CMTCP"


# ---------------------------------------------------------------------------
# Fixed-width encoders
# ---------------------------------------------------------------------------


def _uint(x: int, width: int) -> bytes:
    if not isinstance(x, int) or isinstance(x, bool):
        raise TypeError(f"expected int, got {type(x).__name__}")
    if x < 0 or x >= (1 << (8 * width)):
        raise ValueError(f"value {x} does not fit in {width} bytes")
    return x.to_bytes(width, "big")


def u16(x: int) -> bytes:
    return _uint(x, 2)


def u32(x: int) -> bytes:
    return _uint(x, 4)


def u64(x: int) -> bytes:
    return _uint(x, 8)


def u256(x: int) -> bytes:
    return _uint(x, 32)


def encode_str(s: str) -> bytes:
    raw = s.encode("utf-8")
    return u32(len(raw)) + raw


def normalize_address(addr: str) -> str:
    """
    Canonical form of an account address.

    ``0x``-prefixed hex addresses are lowercased so that checksum casing
    never yields a second identifier for the same account. Other address
    schemes are kept verbatim (after stripping whitespace).
    """
    if not isinstance(addr, str):
        raise TypeError("address must be a str")
    a = addr.strip()
    if not a:
        raise ValueError("address must not be empty")
    if a[:2].lower() == "0x":
        body = a[2:]
        try:
            bytes.fromhex(body)
        except ValueError:
            return a
        return "0x" + body.lower()
    return a


def encode_address(addr: str) -> bytes:
    return encode_str(normalize_address(addr))


# ---------------------------------------------------------------------------
# Identifier derivation
# ---------------------------------------------------------------------------


def sha3(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def proposal_id(tag: Union[Tag, str], args: bytes, nonce: int) -> bytes:
    tag_raw = Tag(tag).value.encode("ascii")
    if not isinstance(args, (bytes, bytearray)):
        raise TypeError("args must be bytes")
    buf = u16(len(tag_raw)) + tag_raw + u32(len(args)) + bytes(args) + u256(nonce)
    return sha3(buf)


def price_args_hash(message_kind: str, price: int, valid_from: int) -> bytes:
    return sha3(encode_str(message_kind) + u256(price) + u64(valid_from))


def to_hex(pid: bytes) -> str:
    return "0x" + bytes(pid).hex()


def parse_bytes32(value: ProposalIdLike, what: str = "proposal id") -> bytes:
    """Accept raw 32 bytes or hex text (with or without 0x)."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"{what} is not hex: {value!r}") from e
    else:
        raise TypeError(f"{what} must be bytes or hex str")
    if len(raw) != ID_LEN:
        raise ValueError(f"{what} must be {ID_LEN} bytes, got {len(raw)}")
    return raw


def parse_proposal_id(value: ProposalIdLike) -> bytes:
    return parse_bytes32(value, "proposal id")


# ---------------------------------------------------------------------------
# Per-action builders
# ---------------------------------------------------------------------------


def add_governor_id(account: str, nonce: int) -> bytes:
    return proposal_id(Tag.ADD_GOVERNOR, encode_address(account), nonce)


def remove_governor_id(account: str, nonce: int) -> bytes:
    return proposal_id(Tag.REMOVE_GOVERNOR, encode_address(account), nonce)


def threshold_change_id(percentage: int, nonce: int) -> bytes:
    return proposal_id(Tag.CHANGE_THRESHOLD, u256(percentage), nonce)


def decline_id(target: ProposalIdLike, nonce: int) -> bytes:
    return proposal_id(Tag.DECLINE_PROPOSAL, parse_proposal_id(target), nonce)


def ttl_change_id(ttl: int, nonce: int) -> bytes:
    return proposal_id(Tag.CHANGE_TTL, u256(ttl), nonce)


def revert_price_id(arg_hash: ProposalIdLike, nonce: int) -> bytes:
    return proposal_id(Tag.REVERT_PRICE, parse_bytes32(arg_hash, "arg_hash"), nonce)


def transfer_ownership_id(new_owner: str, nonce: int) -> bytes:
    return proposal_id(Tag.TRANSFER_OWNERSHIP, encode_address(new_owner), nonce)


def renounce_ownership_id(nonce: int) -> bytes:
    return proposal_id(Tag.RENOUNCE_OWNERSHIP, b"", nonce)


def add_leader_id(account: str, nonce: int) -> bytes:
    return proposal_id(Tag.ADD_LEADER, encode_address(account), nonce)


def remove_leader_id(account: str, nonce: int) -> bytes:
    return proposal_id(Tag.REMOVE_LEADER, encode_address(account), nonce)


def bound_change_id(percentage: int, nonce: int) -> bytes:
    return proposal_id(Tag.CHANGE_BOUND, u256(percentage), nonce)
