"""
Application error taxonomy.

Every error is an HTTPException carrying the standard
{"code": ..., "message": ...} detail body, so services raise them directly
and FastAPI renders them without extra handlers.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"
    message: str = "Request could not be processed"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code or type(self).code
        self.message = message or type(self).message
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": self.message},
            headers=headers,
        )


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    message = "Missing, invalid or expired session"


class Unauthorized(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "NOT_AUTHORIZED"
    message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource already exists"


class InvariantViolation(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVARIANT_VIOLATION"
    message = "Operation would leave the resource in an invalid state"


class Expired(AppError):
    status_code = status.HTTP_410_GONE
    code = "EXPIRED"
    message = "Resource has expired"


class ValidationFailed(AppError):
    status_code = 422
    code = "VALIDATION_FAILED"
    message = "Request failed validation"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message = "Too many requests, try again later"


# ---------------------------------------------------------------------------
# OTP
# ---------------------------------------------------------------------------

class OtpNotFound(NotFound):
    code = "OTP_NOT_FOUND"
    message = "No OTP found for this phone number"


class OtpExpired(Expired):
    code = "OTP_EXPIRED"
    message = "OTP has expired"


class OtpAlreadyUsed(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "OTP_ALREADY_USED"
    message = "OTP has already been used"


class OtpMismatch(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "OTP_MISMATCH"
    message = "Invalid OTP code"


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

class InvitationExpired(Expired):
    code = "INVITE_EXPIRED"
    message = "Invitation has expired"


class InvitationNotPending(Conflict):
    code = "INVITE_NOT_PENDING"
    message = "Invitation is no longer valid"


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

class EditWindowExpired(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "EDIT_WINDOW_EXPIRED"
    message = "Messages can only be edited shortly after being sent"


class DuplicateReaction(Conflict):
    code = "DUPLICATE_REACTION"
    message = "You already reacted with this emoji"


class InvalidParent(ValidationFailed):
    code = "INVALID_PARENT"
    message = "Parent message does not exist in this workspace"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class FileTooLarge(ValidationFailed):
    code = "FILE_TOO_LARGE"
    message = "File is too large"


class FileTypeNotAllowed(ValidationFailed):
    code = "FILE_TYPE_NOT_ALLOWED"
    message = "File type is not allowed"
