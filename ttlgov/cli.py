#!/usr/bin/env python3
"""
ttlgov CLI: proposals, votes and gated value-store actions over a
persisted state file.

Every mutating command loads the snapshot, runs exactly one operation and
saves atomically only if the operation succeeded. Results are printed as
one JSON object per command: {"ok": true, ...} or
{"ok": false, "error": <code>, "detail": <message>}.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import load_config
from .executor import GovernanceExecutor
from .runtime import proposal_ids as ids
from .runtime.errors import GovernanceError
from .runtime.proposal_ids import to_hex

log = logging.getLogger("ttlgov.cli")

# action -> (arg names, id builder, executor call)
ActionSpec = Tuple[
    Tuple[str, ...],
    Callable[[List[Any], int], bytes],
    Callable[[GovernanceExecutor, List[Any], int], Any],
]


def _revert_hash(a: List[Any]) -> bytes:
    return ids.price_args_hash(a[0], a[1], a[2])


ACTIONS: Dict[str, ActionSpec] = {
    "add-governor": (
        ("account",),
        lambda a, n: ids.add_governor_id(a[0], n),
        lambda ex, a, n: ex.governance.add_governor(a[0], n),
    ),
    "remove-governor": (
        ("account",),
        lambda a, n: ids.remove_governor_id(a[0], n),
        lambda ex, a, n: ex.governance.remove_governor(a[0], n),
    ),
    "threshold": (
        ("percentage:int",),
        lambda a, n: ids.threshold_change_id(a[0], n),
        lambda ex, a, n: ex.governance.change_threshold_percentage(a[0], n),
    ),
    "decline": (
        ("proposal_id",),
        lambda a, n: ids.decline_id(a[0], n),
        lambda ex, a, n: ex.governance.decline_proposal(a[0], n).to_state(),
    ),
    "ttl": (
        ("ttl:int",),
        lambda a, n: ids.ttl_change_id(a[0], n),
        lambda ex, a, n: ex.gateway.change_ttl(a[0], n),
    ),
    "revert-price": (
        ("message_kind", "price:int", "valid_from:int"),
        lambda a, n: ids.revert_price_id(_revert_hash(a), n),
        lambda ex, a, n: ex.gateway.revert_price(a[0], a[1], a[2], _revert_hash(a), n),
    ),
    "transfer-ownership": (
        ("new_owner",),
        lambda a, n: ids.transfer_ownership_id(a[0], n),
        lambda ex, a, n: ex.gateway.transfer_ownership(a[0], n),
    ),
    "renounce-ownership": (
        (),
        lambda a, n: ids.renounce_ownership_id(n),
        lambda ex, a, n: ex.gateway.renounce_ownership(n),
    ),
    "add-leader": (
        ("account",),
        lambda a, n: ids.add_leader_id(a[0], n),
        lambda ex, a, n: ex.gateway.add_leader(a[0], n),
    ),
    "remove-leader": (
        ("account",),
        lambda a, n: ids.remove_leader_id(a[0], n),
        lambda ex, a, n: ex.gateway.remove_leader(a[0], n),
    ),
    "bound": (
        ("percentage:int",),
        lambda a, n: ids.bound_change_id(a[0], n),
        lambda ex, a, n: ex.gateway.change_bound_percentage(a[0], n),
    ),
}


class CliError(Exception):
    pass


def _coerce_args(action: str, raw: Sequence[str]) -> List[Any]:
    if action not in ACTIONS:
        raise CliError(f"unknown action {action!r}; choose from {sorted(ACTIONS)}")
    names = ACTIONS[action][0]
    if len(raw) != len(names):
        raise CliError(f"{action} expects {len(names)} argument(s): {' '.join(names) or '(none)'}")
    out: List[Any] = []
    for name, value in zip(names, raw):
        if name.endswith(":int"):
            try:
                out.append(int(value))
            except ValueError:
                raise CliError(f"{name.split(':')[0]} must be an integer, got {value!r}") from None
        else:
            out.append(value)
    return out


def _emit(result: Dict[str, Any]) -> None:
    print(json.dumps(result, sort_keys=True, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    if ex.state_store.exists() and not args.force:
        raise CliError(f"{ex.state_store.path} already exists (use --force to overwrite)")
    ex.reset()
    return {
        "state": str(ex.state_store.path),
        "governors": ex.governance.governors(),
        "leaders": ex.gateway.leaders.members(),
        "ttl": ex.store.get_ttl(),
    }


def cmd_id(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    a = _coerce_args(args.action, args.args)
    pid = ACTIONS[args.action][1](a, args.nonce)
    out = {"action": args.action, "nonce": args.nonce, "proposal_id": to_hex(pid)}
    if args.action == "revert-price":
        out["arg_hash"] = to_hex(_revert_hash(a))
    return out


def cmd_propose(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    expiry = args.expiry if args.expiry is not None else int(ex.clock()) + args.duration
    rec = ex.governance.register_proposal(args.caller, args.proposal_id, expiry)
    return {"proposal_id": args.proposal_id, "proposal": rec.to_state()}


def cmd_vote(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    rec = ex.governance.cast_vote(args.caller, args.proposal_id)
    return {
        "proposal_id": args.proposal_id,
        "vote_count": rec.vote_count,
        "valid": ex.governance.evaluate_proposal(args.proposal_id),
    }


def cmd_evaluate(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    gov = ex.governance
    rec = gov.proposal(args.proposal_id)
    return {
        "proposal_id": args.proposal_id,
        "exists": rec is not None,
        "vote_count": rec.vote_count if rec else 0,
        "governor_count": gov.governor_count,
        "threshold_percentage": gov.threshold_percentage,
        "valid": gov.evaluate_proposal(args.proposal_id),
        "open": rec.accepts_votes(int(ex.clock())) if rec else False,
    }


def cmd_exec(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    a = _coerce_args(args.action, args.args)
    result = ACTIONS[args.action][2](ex, a, args.nonce)
    return {"action": args.action, "result": result}


def cmd_leader(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    if args.leader_action == "set-price":
        ex.gateway.set_price(args.caller, args.message_kind, args.price, args.valid_from)
        return {"message_kind": args.message_kind, "price": args.price, "valid_from": args.valid_from}
    ttl = ex.gateway.change_ttl_within_bounds(args.caller, args.ttl)
    return {"ttl": ttl}


def cmd_show(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "governors": ex.governance.governors(),
        "threshold_percentage": ex.governance.threshold_percentage,
        "leaders": ex.gateway.leaders.members(),
        "bound_percentage": ex.gateway.bound_percentage,
        "ttl": ex.store.get_ttl(),
        "owner": ex.store.owner,
        "proposals": ex.governance.registry.to_state(),
        "executed": ex.gateway.executed_ids(),
    }


def cmd_events(ex: GovernanceExecutor, args: argparse.Namespace) -> Dict[str, Any]:
    return {"events": [e.model_dump() for e in ex.events.since(args.since)]}


# command -> (handler, mutates state)
COMMANDS: Dict[str, Tuple[Callable[[GovernanceExecutor, argparse.Namespace], Dict[str, Any]], bool]] = {
    "init": (cmd_init, True),
    "id": (cmd_id, False),
    "propose": (cmd_propose, True),
    "vote": (cmd_vote, True),
    "evaluate": (cmd_evaluate, False),
    "exec": (cmd_exec, True),
    "leader": (cmd_leader, True),
    "show": (cmd_show, False),
    "events": (cmd_events, False),
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ttlgov", description="Threshold governance for a shared TTL/price store")
    p.add_argument("--config", default=None, help="YAML config (default: ./ttlgov_config.yaml)")
    p.add_argument("--state", default=None, help="State snapshot path (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("init", help="Create a fresh state snapshot from config")
    s.add_argument("--force", action="store_true")

    s = sub.add_parser("id", help="Compute the proposal id for an action")
    s.add_argument("action", choices=sorted(ACTIONS))
    s.add_argument("args", nargs="*")
    s.add_argument("--nonce", type=int, required=True)

    s = sub.add_parser("propose", help="Register a proposal id")
    s.add_argument("proposal_id")
    s.add_argument("--as", dest="caller", required=True)
    g = s.add_mutually_exclusive_group(required=True)
    g.add_argument("--expiry", type=int)
    g.add_argument("--duration", type=int)

    s = sub.add_parser("vote", help="Vote for a proposal")
    s.add_argument("proposal_id")
    s.add_argument("--as", dest="caller", required=True)

    s = sub.add_parser("evaluate", help="Report whether a proposal is valid")
    s.add_argument("proposal_id")

    s = sub.add_parser("exec", help="Execute a governor-tier action")
    s.add_argument("action", choices=sorted(ACTIONS))
    s.add_argument("args", nargs="*")
    s.add_argument("--nonce", type=int, required=True)

    s = sub.add_parser("leader", help="Execute a leader-tier action")
    s.add_argument("--as", dest="caller", required=True)
    lsub = s.add_subparsers(dest="leader_action", required=True)
    sp = lsub.add_parser("set-price")
    sp.add_argument("message_kind")
    sp.add_argument("price", type=int)
    sp.add_argument("valid_from", type=int)
    st = lsub.add_parser("set-ttl")
    st.add_argument("ttl", type=int)

    sub.add_parser("show", help="Print current state")

    s = sub.add_parser("events", help="Print the notification log")
    s.add_argument("--since", type=int, default=0)
    return p


def main(argv: Optional[Sequence[str]] = None, *, clock: Optional[Callable[[], int]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except GovernanceError as e:
        _emit(e.to_dict())
        return 1

    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )

    handler, mutates = COMMANDS[args.command]
    try:
        ex = GovernanceExecutor(cfg, clock=clock, state_path=args.state)
        if args.command != "init":
            ex.load()
        result = handler(ex, args)
        if mutates:
            ex.save()
    except GovernanceError as e:
        log.warning("%s failed: %s", args.command, e)
        _emit(e.to_dict())
        return 1
    except (CliError, ValueError, TypeError) as e:
        _emit({"ok": False, "error": "invalid_argument", "detail": str(e)})
        return 2

    _emit({"ok": True, **result})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
