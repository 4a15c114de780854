# survey_relay/errors.py
from typing import Optional


class SurveyRelayError(Exception):
    """Base class for everything the submit pipeline raises on purpose."""


class ValidationError(SurveyRelayError):
    """Submission body is empty or missing. Answered with 400."""


class TransportError(SurveyRelayError):
    """Relay unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendError(SurveyRelayError):
    """Authenticating to or talking to the spreadsheet failed. Answered with 500."""


class FallbackError(SurveyRelayError):
    """The fallback handler itself failed; nothing left to try."""
