"""
Status vocabularies for the evaluation lifecycle.

An evaluation carries three independent axes. They are stored as plain strings;
which transitions are legal is decided in `services.decision_gate`, not here.
"""
from enum import Enum


class MatchStatus(str, Enum):
    """Automated resume/job match outcome (HR may override)."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class InterviewerStatus(str, Enum):
    """One interviewer's recommendation on one InterviewDetail row."""

    PENDING = "pending"
    SELECTED = "selected"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class HrFinalStatus(str, Enum):
    PENDING = "pending"
    SELECTED = "selected"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class UserRole(str, Enum):
    HR = "HR"
    ADMIN = "Admin"
    INTERVIEWER = "Interviewer"


class AssignmentNote(str, Enum):
    ASSIGNED = "Assigned"
    REASSIGNED = "Reassigned"
    BULK = "Bulk assignment"
    SELF_SCHEDULED = "Candidate self-scheduled"


TERMINAL_INTERVIEWER_STATUSES = {
    InterviewerStatus.SELECTED.value,
    InterviewerStatus.REJECTED.value,
    InterviewerStatus.ON_HOLD.value,
}
