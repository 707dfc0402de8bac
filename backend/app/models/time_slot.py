from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.sql import func

from ..database import Base


class TimeSlot(Base):
    """
    An interviewer-published interval. Only services.slot_store writes these rows.

    is_booked and evaluation_id always move together: free slots have no evaluation.
    """
    __tablename__ = "interviewer_time_slots"
    __table_args__ = (
        UniqueConstraint("interviewer_id", "start_time", "end_time", name="uq_slots_interviewer_interval"),
    )

    id = Column(Integer, primary_key=True, index=True)
    interviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, index=True)  # naive UTC
    end_time = Column(DateTime, nullable=False, index=True)  # naive UTC
    is_booked = Column(Boolean, nullable=False, default=False, index=True)
    evaluation_id = Column(
        Integer, ForeignKey("candidate_evaluations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    job_id = Column(Integer, ForeignKey("job_descriptions.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)
