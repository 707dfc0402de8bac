from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Evaluation(Base):
    """
    "This candidate vs. this job posting".

    `status` is the automated match outcome, `interviewer_overall_status` summarises the
    panel's InterviewDetail rows and `hr_final_status` is HR's decision. The three move
    independently; see services.decision_gate for the rules.
    """
    __tablename__ = "candidate_evaluations"
    __table_args__ = (
        UniqueConstraint("resume_id", "job_id", name="uq_evaluations_resume_job"),
    )

    id = Column(Integer, primary_key=True, index=True)
    resume_id = Column(Integer, ForeignKey("resumes.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("job_descriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_name = Column(String(255), nullable=True)
    contact_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True, index=True)

    # Automated match (filled from the external scorer)
    overall_match = Column(Float, nullable=False, default=0)
    skills_match = Column(Float, nullable=False, default=0)
    skills_details = Column(Text, nullable=True)
    experience_match = Column(Float, nullable=False, default=0)
    experience_details = Column(Text, nullable=True)
    education_match = Column(Float, nullable=False, default=0)
    education_details = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text, nullable=True)

    interviewer_overall_status = Column(String(20), nullable=False, default="pending")

    hr_final_status = Column(String(20), nullable=False, default="pending", index=True)
    hr_final_reason = Column(Text, nullable=True)
    hr_remarks = Column(String(100), nullable=True)

    # Shared by every interviewer on the panel.
    interview_start_url = Column(String(1000), nullable=True)
    interview_join_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    job = relationship("JobDescription", back_populates="evaluations")
    resume = relationship("ResumeSubmission")
    interview_details = relationship(
        "InterviewDetail",
        back_populates="evaluation",
        order_by="InterviewDetail.id",
    )
