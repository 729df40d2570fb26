"""
Error taxonomy shared by services and endpoints.

Services raise ``ServiceError`` for every expected failure.  The
exception carries a closed ``ErrorCode``, a human readable message and
optional structured details.  ``main.create_app`` registers handlers
that render it as ``{"success": false, "message": ..., "details": ...}``
with the HTTP status from ``HTTP_STATUS``.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    UNIQUE_CONSTRAINT_VIOLATION = "UNIQUE_CONSTRAINT_VIOLATION"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"


# Not-found is reported as a client error, like validation failures.
HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNIQUE_CONSTRAINT_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PERMISSION_ERROR: status.HTTP_403_FORBIDDEN,
    ErrorCode.AUTHENTICATION_ERROR: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INTERNAL_SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Expected failure raised by the service layer."""

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.code]

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message, "code": self.code.value}
        if self.details:
            body["details"] = self.details
        return body

    @classmethod
    def validation(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "ServiceError":
        return cls(ErrorCode.VALIDATION_ERROR, message, details)

    @classmethod
    def not_found(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "ServiceError":
        return cls(ErrorCode.NOT_FOUND_ERROR, message, details)

    @classmethod
    def permission(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "ServiceError":
        return cls(ErrorCode.PERMISSION_ERROR, message, details)

    @classmethod
    def unique(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "ServiceError":
        return cls(ErrorCode.UNIQUE_CONSTRAINT_VIOLATION, message, details)

    @classmethod
    def internal(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "ServiceError":
        return cls(ErrorCode.INTERNAL_SERVER_ERROR, message, details)

    @classmethod
    def authentication(cls, message: str) -> "ServiceError":
        return cls(ErrorCode.AUTHENTICATION_ERROR, message)
