"""
Validation utilities for route-level input validation.
"""
import re
from datetime import datetime
from typing import Any
from fastapi import HTTPException

from ..models.status import HrFinalStatus, InterviewerStatus, MatchStatus, UserRole
from .datetimes import parse_utc


def normalize_email(email: str | None) -> str | None:
    """Lower-case and trim; empty becomes None. Used for identity matching, not validation."""
    value = (email or "").strip().lower()
    return value or None


def normalize_name(name: str | None) -> str | None:
    value = (name or "").strip().lower()
    return value or None


def validate_email(email: str) -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise HTTPException(status_code=400, detail="Email is required")

    email = email.strip().lower()
    if len(email) > 255:
        raise HTTPException(status_code=400, detail="Email too long (max 255 characters)")

    # Basic email regex
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    if not re.match(pattern, email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    return email


def validate_password(password: str) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise HTTPException(status_code=400, detail="Password is required")

    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    if len(password) > 128:
        raise HTTPException(status_code=400, detail="Password too long (max 128 characters)")


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a string")

    value = value.strip()

    if not value:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} cannot be empty")
        return None

    if len(value) < min_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_length} characters"
        )

    if len(value) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_length} characters"
        )

    return value


def validate_integer_field(
    value: Any,
    field_name: str,
    min_value: int | None = None,
    max_value: int | None = None,
    required: bool = True,
) -> int | None:
    """Validate an integer field."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise HTTPException(status_code=400, detail=f"{field_name} must be a valid integer")

    if min_value is not None and value < min_value:
        raise HTTPException(status_code=400, detail=f"{field_name} must be at least {min_value}")

    if max_value is not None and value > max_value:
        raise HTTPException(status_code=400, detail=f"{field_name} must not exceed {max_value}")

    return value


def validate_datetime_field(value: str | None, field_name: str, required: bool = True) -> datetime | None:
    """Parse an ISO-8601 datetime to naive UTC."""
    if value is None or not str(value).strip():
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None
    try:
        return parse_utc(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} format. Use ISO 8601 format.")


def _validate_choice(value: str | None, field_name: str, choices: list[str], *, case_sensitive: bool = False) -> str:
    if not value or not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} is required")
    value = value.strip()
    lookup = {c if case_sensitive else c.lower(): c for c in choices}
    key = value if case_sensitive else value.lower()
    if key not in lookup:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field_name.lower()}. Must be one of: {', '.join(choices)}"
        )
    return lookup[key]


def validate_role(role: str) -> str:
    """Validate user role (HR, Admin, Interviewer)."""
    return _validate_choice(role, "Role", [r.value for r in UserRole])


def validate_match_status(status: str | None) -> str:
    return _validate_choice(status, "Status", [s.value for s in MatchStatus])


def validate_interviewer_status(status: str | None) -> str:
    return _validate_choice(status, "Status", [s.value for s in InterviewerStatus])


def validate_hr_status(status: str | None) -> str:
    return _validate_choice(status, "Status", [s.value for s in HrFinalStatus])


def validate_job_status(status: str | None) -> str:
    """Validate job posting status."""
    if not status:
        return "Open"
    return _validate_choice(status, "Job status", ["Open", "On Hold"])


def parse_id_list(raw: str | None, field_name: str) -> list[int]:
    """Parse a comma-separated query parameter of ids ("3,5,8")."""
    if raw is None or not str(raw).strip():
        return []
    out: list[int] = []
    for part in str(raw).split(","):
        part = part.strip()
        if not part:
            continue
        try:
            out.append(int(part))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"{field_name} must be a comma-separated list of integers")
    return out
