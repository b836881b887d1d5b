# ttlgov/config.py
import copy
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .runtime.errors import ConfigError
from .runtime.proposal_ids import normalize_address

CONFIG_FILENAME = "ttlgov_config.yaml"

# -------- Defaults --------
_DEFAULT: Dict[str, Any] = {
    "governance": {
        "threshold_percentage": 50,
        "governors": [],
        # None = no upper bound on how far ahead a proposal deadline may lie
        "max_voting_window_sec": None,
    },
    "gateway": {
        "address": "gateway",
        "bound_percentage": 10,
        "leaders": [],
    },
    "value_store": {"initial_ttl": 3600},
    "state": {"path": "ttlgov_state.json", "keep_backups": 2},
    "logging": {"level": "INFO"},
}

# -------- ENV overrides --------
_ENV_MAP = {
    ("governance", "threshold_percentage"): ("TTLGOV_THRESHOLD_PERCENTAGE", int),
    ("governance", "max_voting_window_sec"): ("TTLGOV_MAX_VOTING_WINDOW_SEC", int),
    ("gateway", "bound_percentage"): ("TTLGOV_BOUND_PERCENTAGE", int),
    ("value_store", "initial_ttl"): ("TTLGOV_INITIAL_TTL", int),
    ("state", "path"): ("TTLGOV_STATE_PATH", str),
    ("logging", "level"): ("TTLGOV_LOG_LEVEL", str),
}


def _unique_accounts(accounts: List[str]) -> List[str]:
    """Canonical addresses, each listed once (0xAB.. and 0xab.. are the same account)."""
    seen: List[str] = []
    for a in accounts:
        key = normalize_address(a)
        if key in seen:
            raise ValueError(f"{key} is listed more than once")
        seen.append(key)
    return seen


class GovernanceSection(BaseModel):
    threshold_percentage: int = Field(50, ge=0, le=100)
    governors: List[str] = Field(default_factory=list)
    max_voting_window_sec: Optional[int] = Field(None, gt=0)

    @field_validator("governors")
    @classmethod
    def _check_governors(cls, v: List[str]) -> List[str]:
        return _unique_accounts(v)


class GatewaySection(BaseModel):
    address: str = "gateway"
    bound_percentage: int = Field(10, ge=0, le=100)
    leaders: List[str] = Field(default_factory=list)

    @field_validator("leaders")
    @classmethod
    def _check_leaders(cls, v: List[str]) -> List[str]:
        return _unique_accounts(v)


class ValueStoreSection(BaseModel):
    initial_ttl: int = Field(3600, gt=0)


class StateSection(BaseModel):
    path: str = "ttlgov_state.json"
    keep_backups: int = Field(2, ge=0)


class LoggingSection(BaseModel):
    level: str = "INFO"


class NodeConfig(BaseModel):
    governance: GovernanceSection = Field(default_factory=GovernanceSection)
    gateway: GatewaySection = Field(default_factory=GatewaySection)
    value_store: ValueStoreSection = Field(default_factory=ValueStoreSection)
    state: StateSection = Field(default_factory=StateSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError as e:
            raise ConfigError(f"{env_name}={val!r} is not a valid {cast.__name__}") from e
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def build_config(data: Optional[Dict[str, Any]] = None) -> NodeConfig:
    """
    Merge a raw mapping over the defaults, apply ENV overrides and
    validate. Raises ConfigError on any invalid value.
    """
    cfg = _deep_merge(copy.deepcopy(_DEFAULT), data or {})
    cfg = _apply_env_overrides(cfg)
    try:
        return NodeConfig(**cfg)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def load_config(path: Optional[str] = None) -> NodeConfig:
    """
    Loads YAML config from `path` (or ./ttlgov_config.yaml).
    A missing file means defaults; an unparseable one is an error.
    """
    path = path or os.path.join(os.getcwd(), CONFIG_FILENAME)
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"cannot parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
    return build_config(data)
