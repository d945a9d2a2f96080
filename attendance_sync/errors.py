from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
INVALID_CLOCK_TYPE = "INVALID_CLOCK_TYPE"
INVALID_FIELD = "INVALID_FIELD"
EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
RECORD_WRITE_FAILED = "RECORD_WRITE_FAILED"


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class TransactionFault(Exception):
    """Storage-layer failure that aborted a whole batch.

    Raised only after the batch transaction has been rolled back; callers get
    no partial counts because nothing from the batch was kept.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation
        self.message = message


class RecordRejected(Exception):
    """Per-record validation or referential failure inside a batch."""

    def __init__(self, code: str, message: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = context


@dataclass(slots=True)
class RecordError:
    index: int
    code: str
    error: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"index": self.index, "code": self.code, "error": self.error}
        payload.update({key: value for key, value in self.context.items() if value is not None})
        return payload


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    payload = {
        "success": False,
        "error": error,
    }
    return JSONResponse(status_code=status_code, content=payload)
