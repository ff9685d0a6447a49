"""Exception types raised by the takeover engine.

Only setup failures raise. "Panel not found", degraded extraction, failed
sends and response timeouts are reported as fields on result records.
"""

from __future__ import annotations

from typing import Any


class TakeoverError(Exception):
    pass


class SessionConnectionError(TakeoverError, ConnectionError):
    pass


class NotConnectedError(TakeoverError):
    def __init__(self, message: str = "Not connected. Call connect() first.") -> None:
        super().__init__(message)


class InvalidSignalError(TakeoverError, ValueError):
    pass


class MountFailure(TakeoverError):
    def __init__(self, message: str, *, trace: str = "", step: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.trace = trace
        self.step = step

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "step": self.step,
            "trace": self.trace,
        }
