"""
Assessment engine errors.

All derive from ValueError so callers that only know the generic
service-layer contract still catch them; the API maps each subclass
to its own status code.
"""


class AssessmentError(ValueError):
    """Base class for errors surfaced to the caller without state change."""

    status_code = 400


class NotFoundError(AssessmentError):
    """Referenced session or user does not exist."""

    status_code = 404


class AssessmentValidationError(AssessmentError):
    """Missing or malformed required field."""

    status_code = 422


class InvariantViolation(AssessmentError):
    """Operation not allowed in the session's current state."""

    status_code = 409


class UpstreamUnavailableError(AssessmentError):
    """An oracle failed or returned unparseable output."""

    status_code = 502


class UpstreamGenerationError(UpstreamUnavailableError):
    """The question oracle could not produce a usable question."""


class ModerationRejected(AssessmentError):
    """A username was refused by the moderation filter."""

    status_code = 400
