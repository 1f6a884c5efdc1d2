"""
levelgate/errors.py
Centralized error handling for the level gate API.

CORE PRINCIPLES:
- Every error path defaults to deny
- All errors follow a consistent, machine-readable structure
- Errors are user-safe (no store internals, no stack traces)

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

The level gate emits three fixed shapes of its own:
- 401 {"success": false, "message": ...}
- 403 {"success": false, "message": ..., "code": "LEVEL_ACCESS_DENIED",
       "qualification_status": ..., "required_level": ...}
- 500 {"success": false, "message": "Failed to validate level access"}
"""

import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_LEVEL = "INVALID_LEVEL"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    TEAM_REQUIRED = "TEAM_REQUIRED"

    FORBIDDEN = "FORBIDDEN"
    LEVEL_ACCESS_DENIED = "LEVEL_ACCESS_DENIED"

    NOT_FOUND = "NOT_FOUND"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    ACCESS_CHECK_FAILED = "ACCESS_CHECK_FAILED"


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            details=details
        )


class UnauthorizedError(APIError):
    """401 Unauthorized - Authentication required"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )


class ForbiddenError(APIError):
    """403 Forbidden - Access denied"""
    def __init__(self, message: str, code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class InternalError(APIError):
    """500 Internal Server Error - Use sparingly, only for true internal failures"""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


# ================= LEVEL GATE ERRORS =================

class TeamAuthRequiredError(UnauthorizedError):
    """401 - identity missing or not linked to a team"""
    def __init__(self, message: str = "Team authentication required"):
        super().__init__(message=message, code=ErrorCode.TEAM_REQUIRED)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


class LevelAccessDeniedError(ForbiddenError):
    """403 - the access decision engine denied the requested level"""
    def __init__(
        self,
        message: str,
        required_level: int,
        qualification_status: Optional[str] = None,
        reason_code: Optional[str] = None
    ):
        self.required_level = required_level
        self.qualification_status = qualification_status
        self.reason_code = reason_code
        super().__init__(message=message, code=ErrorCode.LEVEL_ACCESS_DENIED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "code": self.code,
            "qualification_status": self.qualification_status,
            "required_level": self.required_level
        }


class LevelAccessCheckError(APIError):
    """500 - the gate could not reach a decision; never leaks the cause"""
    def __init__(self, message: str = "Failed to validate level access"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.ACCESS_CHECK_FAILED
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


def new_log_id() -> str:
    return str(uuid.uuid4())[:8]


def log_internal(error: Exception, context: str = "") -> str:
    """Log an internal error under a short correlation id and return the id"""
    log_id = new_log_id()
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    return log_id
