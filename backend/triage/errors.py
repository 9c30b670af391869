"""Error taxonomy shared by the connector client, controllers and API."""

from __future__ import annotations


class TriageError(Exception):
    """Base class for every error the inbox core raises."""

    code = "triage_error"
    status_code = 500

    def __init__(self, message: str = "", *, chat_id: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.chat_id = chat_id


class Unauthorized(TriageError):
    """Missing or rejected Beeper access token. Fatal for the session."""

    code = "unauthorized"
    status_code = 401


class NotFound(TriageError):
    code = "not_found"
    status_code = 404


class BadRequest(TriageError):
    code = "bad_request"
    status_code = 400


class UpstreamFailure(TriageError):
    """Network or service error while talking to the connector."""

    code = "upstream_failure"
    status_code = 502


class SuggestionFailure(TriageError):
    """Suggestion could not be produced.

    Never surfaced to the user; callers degrade to "no suggestion".
    """

    code = "suggestion_failure"
    status_code = 503
