"""
Centralized error handling and user-friendly error messages.

Services raise `AppError` subclasses; the FastAPI app turns them into the standard
`{"success": false, "error": ...}` envelope (see main.register_error_handlers).
"""
import logging
from typing import Any
from fastapi import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or invalid input. Raised before anything is written."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Referenced row is missing or does not satisfy a required predicate."""
    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class UnauthorizedError(AppError):
    """Unauthorized access error."""
    def __init__(self, message: str = "Unauthorized access", details: dict | None = None):
        super().__init__(message, status_code=401, details=details)


class ForbiddenError(AppError):
    """Forbidden access error."""
    def __init__(self, message: str = "Access forbidden", details: dict | None = None):
        super().__init__(message, status_code=403, details=details)


class ConflictError(AppError):
    """
    Another request won the race for a shared row (e.g. a slot was claimed between
    listing and claiming). Callers may retry with fresh data.
    """
    def __init__(self, message: str = "Resource was modified by another request", details: dict | None = None):
        merged = {"retryable": True}
        merged.update(details or {})
        super().__init__(message, status_code=409, details=merged)


class UpstreamError(AppError):
    """A third-party collaborator (meeting links, scorer) failed."""
    def __init__(self, message: str = "Upstream service unavailable", details: dict | None = None):
        super().__init__(message, status_code=502, details=details)


class DatabaseError(AppError):
    """Database error."""
    def __init__(self, message: str = "Database operation failed", details: dict | None = None):
        super().__init__(message, status_code=500, details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Authentication
    "invalid_credentials": "Invalid email or password. Please try again.",
    "email_exists": "An account with this email already exists. Please login instead.",
    "weak_password": "Password must be at least 6 characters long.",
    "session_expired": "Your session has expired. Please login again.",
    "account_inactive": "Your account has been deactivated. Please contact an administrator.",

    # Jobs
    "job_not_found": "Job description not found.",
    "job_not_open": "This job posting is not accepting applications right now.",

    # Resumes / intake
    "resume_not_found": "Resume not found.",
    "recent_application": "This candidate has already applied within the re-application window.",

    # Evaluations
    "evaluation_not_found": "Evaluation not found.",

    # Interviews
    "interviewer_not_found": "Invalid interviewer ID or user is not an active Interviewer.",
    "interview_detail_not_found": "Interview assignment not found.",
    "slot_not_found": "Time slot not found.",
    "slot_unavailable": "Selected slot is no longer available. Please choose another slot.",
    "slot_not_deletable": "Slot not found or already booked.",
    "not_assigned_interviewer": "Only the interviewer assigned to this interview can submit feedback.",
    "invalid_slot_range": "end_time must be after start_time.",
    "hold_reason_required": "A hold reason is required when putting a candidate on hold.",
    "decision_reason_required": "A reason is required for this decision.",
    "override_reason_required": "A reason is required to select a candidate no interviewer selected.",
    "feedback_already_submitted": "Feedback has already been submitted for this interview.",
    "meeting_link_failed": "Interview reserved, but the meeting link could not be created.",
    "slot_selection_not_allowed": "Slot selection is only allowed for candidates with score >= 70%.",
    "interviewer_not_mapped": "Selected interviewer is not mapped to this job description.",
    "interview_already_scheduled": "An interview is already scheduled for this application.",

    # General
    "unauthorized": "Please login to access this feature.",
    "forbidden": "You don't have permission to access this resource.",
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "") -> HTTPException:
    """Handle database errors with user-friendly messages."""
    logger.error(f"Database error during {operation}: {error}")

    error_str = str(error).lower()

    # Detect specific DB errors
    if "duplicate" in error_str or "unique" in error_str:
        return HTTPException(
            status_code=409,
            detail="This record already exists. Please check your input."
        )

    if "foreign key" in error_str:
        return HTTPException(
            status_code=400,
            detail="Invalid reference. The related record may have been deleted."
        )

    if "connection" in error_str or "operational" in error_str:
        return HTTPException(
            status_code=503,
            detail=get_error_message("database_error")
        )

    return HTTPException(
        status_code=500,
        detail=get_error_message("server_error")
    )


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content: dict[str, Any] = {
        "success": False,
        "error": message,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
