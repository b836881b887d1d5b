# ttlgov/__main__.py
"""
Entry point for running the CLI as a module:
    python -m ttlgov [--config ttlgov_config.yaml] [--state ttlgov_state.json] <command> ...
Env overrides:
  TTLGOV_STATE_PATH=...            -> snapshot location
  TTLGOV_THRESHOLD_PERCENTAGE=...  -> initial governor threshold
  TTLGOV_BOUND_PERCENTAGE=...      -> initial leader TTL bound
  TTLGOV_LOG_LEVEL=DEBUG           -> log verbosity (stderr)
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
