"""Error taxonomy shared by the gateway, save guard and reminder evaluator.

Each error carries the HTTP status the API layer answers with.
"""

from __future__ import annotations


class BackofficeError(Exception):
    """Base class for errors surfaced to API callers as {"error": ...}."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BackofficeError):
    """A required field is missing or has an unusable value."""

    status_code = 400


class EmptyStateRejected(BackofficeError):
    """A location save carried neither categories nor task lists."""

    status_code = 400


class SuspiciousShrinkRejected(BackofficeError):
    """A location save would drop a large store of products or tasks to almost nothing."""

    status_code = 400


class NotFoundError(BackofficeError):
    status_code = 404


class CredentialsMissing(BackofficeError):
    """Telegram credentials are not configured."""

    status_code = 400


class UpstreamNotificationError(BackofficeError):
    """The messaging API refused or failed to deliver a message."""

    status_code = 502
