from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class AssignmentHistory(Base):
    """
    Append-only audit row, one per interviewer per (re)assignment.

    The feedback/decision columns mirror the live values for reporting; nothing else is
    ever updated and rows are never deleted.
    """
    __tablename__ = "interview_assignments"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(
        Integer, ForeignKey("candidate_evaluations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    interviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    interview_date = Column(DateTime, nullable=False, index=True)  # naive UTC, from the slot
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    interviewer_feedback = Column(Text, nullable=True)
    interviewer_status = Column(String(20), nullable=True, default="pending")
    interviewer_hold_reason = Column(Text, nullable=True)
    hr_final_status = Column(String(20), nullable=True, default="pending")
    hr_final_reason = Column(Text, nullable=True)
    hr_remarks = Column(String(100), nullable=True)
