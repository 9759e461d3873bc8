from __future__ import annotations


class GatepassError(RuntimeError):
    """Base error for ticketing and notification issues."""


class ValidationError(GatepassError):
    """Raised for malformed payloads or missing required input."""


class NotFoundError(GatepassError):
    """Raised when a ticket or scheduled job could not be located."""


class ConflictError(GatepassError):
    """Raised when a QR payload collides with an existing ticket."""


class ProviderError(GatepassError):
    """Raised when a delivery provider rejects or fails a call."""

    def __init__(self, message: str, *, channel: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


class NotReadyError(GatepassError):
    """Raised when a channel or service is used before it finished initialising."""


class AutomationTimeoutError(GatepassError):
    """Raised when a browser automation wait exceeds its bound."""
