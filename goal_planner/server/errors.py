# server/errors.py
"""
Error taxonomy for the plan relay.

Every error knows the HTTP status it maps to and the JSON body the client
sees. Once an event stream is open the status can no longer change, so the
streaming routes only use `message` for the terminal error event.
"""

from typing import Any, Dict, Optional


class PlanError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class PlanValidationError(PlanError):
    """Missing or invalid goal/horizon. No upstream call is made."""

    status_code = 400

    def __init__(self, message: str = "goal & horizon required"):
        super().__init__(message)


class UpstreamGenerationError(PlanError):
    """The model call itself failed, timed out, or is not configured."""

    status_code = 500

    def to_body(self) -> Dict[str, Any]:
        return {"error": "Server error", "detail": self.message}


class InvalidModelOutput(PlanError):
    """Cleaned model text is not JSON, or has no usable tasks array."""

    status_code = 502

    def __init__(self, message: str, raw: Optional[Any] = None):
        super().__init__(message)
        self.raw = raw

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "raw": self.raw}


class PlanNotFound(PlanError):
    status_code = 404

    def __init__(self, message: str = "Invalid planId"):
        super().__init__(message)
