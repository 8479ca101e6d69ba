"""
Exception types raised by the relay and rendered as JSON error bodies.
"""
from typing import Optional
from fastapi import status


class RelayError(Exception):
    """Base error carrying the HTTP status and the public error body."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, error: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(error)
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_content(self) -> dict:
        content = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        return content


class ConfigurationError(RelayError):
    """The relay cannot reach the upstream because it is misconfigured."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvalidRequestError(RelayError):
    """The caller sent a conversation the relay refuses to forward."""
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(RelayError):
    """The upstream completion API failed or returned something unusable."""
    status_code = status.HTTP_502_BAD_GATEWAY
