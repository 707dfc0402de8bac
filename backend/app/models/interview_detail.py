import json

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class InterviewDetail(Base):
    """One interviewer bound to one claimed slot for one evaluation."""
    __tablename__ = "interview_details"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(
        Integer, ForeignKey("candidate_evaluations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slot_id = Column(Integer, ForeignKey("interviewer_time_slots.id", ondelete="SET NULL"), nullable=True)
    interviewer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    interviewer_status = Column(String(20), nullable=False, default="pending")
    interviewer_feedback = Column(Text, nullable=True)  # JSON object
    interviewer_hold_reason = Column(Text, nullable=True)

    evaluation = relationship("Evaluation", back_populates="interview_details")
    slot = relationship("TimeSlot")
    interviewer = relationship("User")

    @property
    def feedback(self) -> dict | None:
        raw = self.interviewer_feedback or ""
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return data if isinstance(data, dict) else None
        except Exception:
            return None
