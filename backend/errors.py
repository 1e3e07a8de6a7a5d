"""
Translation Errors - structured failures surfaced to callers

Call-level failures (unparseable payloads, empty designs, empty exports) are
raised as TranslationError inside the use cases and converted to structured
results before they reach the command surface.
"""

from typing import Any, Dict

# Error codes shared by the use cases and the command surface
INVALID_PAYLOAD = "invalid_payload"
EMPTY_DESIGN = "empty_design"
NOTHING_CREATED = "nothing_created"
EMPTY_SELECTION = "empty_selection"
NOTHING_EXPORTED = "nothing_exported"
NODE_NOT_FOUND = "node_not_found"
UNKNOWN_ERROR = "unknown_error"


class TranslationError(Exception):
    """
    Structured failure raised by import/export operations.

    Expected payload shape: { code: str, message: str, details?: dict }
    """

    def __init__(self, payload: Any, operation: str | None = None):
        self.operation = operation

        if isinstance(payload, dict):
            self.code: str = str(payload.get("code", UNKNOWN_ERROR))
            self.message: str = str(payload.get("message", ""))
            self.details: Dict[str, Any] = payload.get("details", {}) or {}
        else:
            self.code = UNKNOWN_ERROR
            self.message = str(payload)
            self.details = {}
        self.payload = {"code": self.code, "message": self.message, "details": self.details}

        text = self.message if self.message else self.code
        super().__init__(text)

    @classmethod
    def of(cls, code: str, message: str, operation: str | None = None, **details: Any) -> "TranslationError":
        return cls({"code": code, "message": message, "details": details}, operation=operation)
