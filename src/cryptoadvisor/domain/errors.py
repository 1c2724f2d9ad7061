# src/cryptoadvisor/domain/errors.py
"""
Error taxonomy for smart alert evaluation.

Every error carries a short `tag`. The evaluator catches these per alert and
reports the tag in the pass outcome; none of them aborts a pass.
"""
from typing import Optional


class AlertEvaluationError(Exception):
    tag = "evaluation_error"

    def __init__(self, message: str, alert_id: Optional[int] = None):
        super().__init__(message)
        self.alert_id = alert_id


class DataUnavailable(AlertEvaluationError):
    """The market/portfolio provider failed or timed out."""
    tag = "data_unavailable"


class PersistenceFailure(AlertEvaluationError):
    """A store write failed or raced with a concurrent change."""
    tag = "persistence_failure"


class InvalidDefinition(AlertEvaluationError):
    """The alert definition is malformed for its kind."""
    tag = "invalid_definition"


class BatchTimeout(AlertEvaluationError):
    """The pass deadline elapsed before this alert finished."""
    tag = "batch_timeout"


class AlertLimitExceeded(Exception):
    """A user already owns the maximum number of alerts."""


class UserNotFound(LookupError):
    """The alert owner does not exist."""


class InvalidHolding(ValueError):
    """A watchlist entry has an unknown symbol or a negative amount."""
