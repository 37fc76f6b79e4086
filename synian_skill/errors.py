"""Exceptions raised across the Synian skill layers."""


class SynianSkillError(Exception):
    """Base exception for Synian skill errors."""
    pass


class BackendUnavailable(SynianSkillError):
    """
    Raised when Synian Core cannot be reached or answers with an error.

    ``summary`` is already redacted: exception type and HTTP status only,
    never the response body.
    """

    def __init__(self, operation: str, summary: str):
        self.operation = operation
        self.summary = summary
        super().__init__(f"{operation}: {summary}")


class InvalidEnvelopeError(SynianSkillError):
    """Raised when an inbound platform envelope is missing required fields."""
    pass
