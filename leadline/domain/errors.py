"""
Domain Errors
Error taxonomy shared by the webhook, outbound trigger and scheduler paths
"""
from typing import Any, Optional


class LeadlineError(Exception):
    """Base class for call-core errors"""
    pass


class ConfigurationError(LeadlineError):
    """Raised when a required credential or URL is missing."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProviderAPIError(LeadlineError):
    """Raised when the telephony provider answers with a non-2xx or is unreachable."""
    def __init__(self, action: str, status_code: Optional[int], body: str = ""):
        self.action = action
        self.status_code = status_code
        self.body = body
        super().__init__(f"Telnyx {action} failed (status={status_code}): {body[:300]}")


class EnvelopeParseError(LeadlineError):
    """Raised when a webhook body is not valid JSON or not a JSON object."""
    def __init__(self, reason: str, details: str = ""):
        self.reason = reason
        self.details = details
        super().__init__(f"{reason}: {details}" if details else reason)


class StoreError(LeadlineError):
    """Raised when a database read or write fails."""
    pass


class OutboundCallError(LeadlineError):
    """
    Raised on the synchronous outbound-trigger path.

    Carries the HTTP status the dashboard (or scheduler) should see.
    """
    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body
