"""Draft error kinds.

Every error subclasses ``ValueError`` so callers that only care about "the
request was rejected" can keep catching that.
"""

from __future__ import annotations


class DraftError(ValueError):
    kind = "draft_error"
    status_code = 400

    def to_detail(self) -> dict:
        return {"kind": self.kind, "message": str(self)}


class InvalidStateError(DraftError):
    """Operation attempted against a draft in the wrong lifecycle state."""
    kind = "invalid_state"
    status_code = 409


class OutOfTurnError(DraftError):
    """Pick submitted by a team that is not on the clock."""
    kind = "out_of_turn"
    status_code = 409


class PlayerUnavailableError(DraftError):
    """Player already drafted or never in the pool."""
    kind = "player_unavailable"
    status_code = 409


class NotFoundError(DraftError):
    """Draft, league, team or player reference does not resolve."""
    kind = "not_found"
    status_code = 404


class ConflictError(DraftError):
    """The draft changed between validation and commit; retry on fresh state."""
    kind = "conflict"
    status_code = 409


class ExternalServiceError(DraftError):
    """Ranking service unreachable or returned something unusable."""
    kind = "external_service_failure"
    status_code = 502
