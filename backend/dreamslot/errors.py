"""Protocol errors.

Every error the server returns is a GameError carrying one ErrorCode; the
code fixes both the HTTP status and whether a client retry can succeed.
"""
from enum import Enum

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dreamslot.config import settings


class ErrorCode(str, Enum):
    """Protocol error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    ROUND_IN_PROGRESS = "ROUND_IN_PROGRESS"
    ROUND_NOT_FOUND = "ROUND_NOT_FOUND"
    ITEM_LOCKED = "ITEM_LOCKED"
    RESET_NOT_CONFIRMED = "RESET_NOT_CONFIRMED"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def http_status(self) -> int:
        return _ERROR_TABLE[self][0]

    @property
    def recoverable(self) -> bool:
        """True when retrying later (same request, new state) can succeed."""
        return _ERROR_TABLE[self][1]


# code -> (HTTP status, recoverable)
_ERROR_TABLE: dict[ErrorCode, tuple[int, bool]] = {
    ErrorCode.INVALID_REQUEST: (400, False),
    ErrorCode.ROUND_IN_PROGRESS: (409, True),
    ErrorCode.ROUND_NOT_FOUND: (404, False),
    ErrorCode.ITEM_LOCKED: (403, False),
    ErrorCode.RESET_NOT_CONFIRMED: (400, False),
    ErrorCode.IDEMPOTENCY_CONFLICT: (409, False),
    ErrorCode.INTERNAL_ERROR: (500, True),
}


class ErrorBody(BaseModel):
    code: str
    message: str
    recoverable: bool


class ErrorResponse(BaseModel):
    """Error envelope: {"protocolVersion", "error": {...}}."""

    protocolVersion: str = settings.protocol_version
    error: ErrorBody


class GameError(Exception):
    """Raised anywhere in request handling; rendered by ErrorHandlerMiddleware."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or code.value.replace("_", " ").capitalize()
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.code.http_status

    @property
    def recoverable(self) -> bool:
        return self.code.recoverable

    def to_body(self) -> ErrorBody:
        return ErrorBody(code=self.code.value, message=self.message, recoverable=self.recoverable)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(error=self.to_body()).model_dump(),
        )
