"""Error taxonomy shared by the workflow, attention and storage layers."""

from __future__ import annotations

from typing import Any


class DealerFlowError(Exception):
    """Base exception for dealership workflow errors."""

    default_message = "An error occurred in the dealership workflow engine"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for tool responses and log context."""
        error_dict: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.code:
            error_dict["code"] = self.code
        if self.details:
            error_dict["details"] = self.details
        return error_dict


class ValidationError(DealerFlowError, ValueError):
    """Rejected input: missing fields, unknown locations, unknown reason codes."""

    default_message = "Validation error"


class NotFoundError(DealerFlowError, LookupError):
    """Referenced vehicle, location or notification does not exist."""

    default_message = "Not found"


class PersistenceError(DealerFlowError):
    """Key-value store read/write failure."""

    default_message = "Persistence error"
