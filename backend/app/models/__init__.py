from .assignment_history import AssignmentHistory
from .evaluation import Evaluation
from .interview_detail import InterviewDetail
from .job import JobDescription
from .resume import ResumeSubmission
from .time_slot import TimeSlot
from .user import User

__all__ = [
    "AssignmentHistory",
    "Evaluation",
    "InterviewDetail",
    "JobDescription",
    "ResumeSubmission",
    "TimeSlot",
    "User",
]
