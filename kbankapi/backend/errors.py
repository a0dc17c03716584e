from __future__ import annotations

from typing import Any, Dict, List, Optional

from .schemas import FieldError


def field_error(path: str, msg: str, value: Any = None, location: str = "body") -> Dict[str, Any]:
    """Build one entry of the ``{"errors": [...]}`` response body."""
    return FieldError(value=value, msg=msg, path=path, location=location).model_dump()


class FieldValidationError(Exception):
    """Request input was rejected before reaching the banking session."""

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("; ".join(str(err.get("msg")) for err in errors))
        self.errors = errors

    @classmethod
    def single(cls, path: str, msg: str, value: Any = None, location: str = "body") -> "FieldValidationError":
        return cls([field_error(path, msg, value, location)])


class OperationFailed(Exception):
    """A banking operation failed; the message is returned to the caller as-is."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
