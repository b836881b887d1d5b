# ttlgov/runtime/__init__.py
from __future__ import annotations

"""
ttlgov runtime package (lazy import)

This file intentionally does NOT import the runtime modules at import
time; the security layer imports runtime.errors / runtime.roles while
runtime.governance imports the security layer, so eager imports here
would cycle.

It provides lazy module attribute access via __getattr__ (PEP 562).
"""

from importlib import import_module
from typing import Any

__all__ = [
    "errors",
    "proposal_ids",
    "roles",
    "events",
    "governance",
    "gateway",
    "value_store",
    "atomic_store",
]

_LAZY_MAP = {name: f"ttlgov.runtime.{name}" for name in __all__}


def __getattr__(name: str) -> Any:
    mod_path = _LAZY_MAP.get(name)
    if not mod_path:
        raise AttributeError(name)
    return import_module(mod_path)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_MAP.keys()))
