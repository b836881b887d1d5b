from __future__ import annotations

"""
Error taxonomy for the governance engine and authorization gateway.

Every failure aborts the whole operation; nothing here is retried. Each
exception carries a stable ``code`` so callers (CLI, logs, persisted audit
records) can report a machine-readable reason:

- unauthorized        caller lacks the leader / governor role
- proposal_not_found  no proposal registered under the identifier
- proposal_exists     identifier already registered
- already_voted       governor voted on this proposal before
- voting_closed       deadline passed or proposal declined
- already_executed    proposal already authorized its action once
- proposal_not_valid  threshold not reached
- invalid_deadline    expiry outside the voting-window policy
- out_of_bounds       numeric value outside its permitted range
- argument_mismatch   supplied argument hash != recomputed hash
- config_error        configuration value violates its own invariant
"""

from typing import Any, Dict, Optional


class GovernanceError(Exception):
    code: str = "governance_error"

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.detail = dict(detail or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.code, "detail": str(self)}


class AuthorizationError(GovernanceError):
    code = "unauthorized"


class ProposalError(GovernanceError):
    code = "proposal_error"


class ProposalNotFound(ProposalError):
    code = "proposal_not_found"


class AlreadyExists(ProposalError):
    code = "proposal_exists"


class AlreadyVoted(ProposalError):
    code = "already_voted"


class VotingClosed(ProposalError):
    code = "voting_closed"


class AlreadyExecuted(ProposalError):
    code = "already_executed"


class ProposalNotValid(AuthorizationError):
    """Governor-tier action attempted without a proposal over the threshold."""

    code = "proposal_not_valid"


class InvalidDeadline(ProposalError):
    code = "invalid_deadline"


class BoundsError(GovernanceError):
    code = "out_of_bounds"


# Name used throughout the leader-tier checks.
OutOfBounds = BoundsError


class ArgumentMismatchError(GovernanceError):
    code = "argument_mismatch"


class ConfigError(GovernanceError):
    code = "config_error"
