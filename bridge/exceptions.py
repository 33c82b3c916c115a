"""Unified exception hierarchy for the signal bridge."""

from typing import Any


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    def __init__(
        self,
        message: str,
        error_type: str = "bridge_error",
        raw_error: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.raw_error = raw_error

    def to_dict(self) -> dict:
        """Convert to a plain error payload (for log lines or exit reports)."""
        return {
            "type": "error",
            "error": {
                "type": self.error_type,
                "message": self.message,
            },
        }


class ConfigurationError(BridgeError):
    """Raised for invalid signals, double install or invalid wait sources."""

    def __init__(self, message: str, raw_error: Any = None):
        super().__init__(
            message,
            error_type="configuration_error",
            raw_error=raw_error,
        )


class ResourceExhaustion(BridgeError):
    """Raised when the channel or the multiplexer cannot be created."""

    def __init__(self, message: str, raw_error: Any = None):
        super().__init__(
            message,
            error_type="resource_exhaustion",
            raw_error=raw_error,
        )


class UnexpectedClosure(BridgeError):
    """Raised when the read end sees the write end closed behind our back."""

    def __init__(self, message: str, raw_error: Any = None):
        super().__init__(
            message,
            error_type="unexpected_closure",
            raw_error=raw_error,
        )
