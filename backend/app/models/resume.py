from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from ..database import Base


class ResumeSubmission(Base):
    """
    One uploaded resume. Immutable after insert.

    Submissions of the same candidate form a version chain: the root has parent_id=NULL and
    version_number=1; every later submission points at the root (never at an intermediate
    version) with the next version number.
    """
    __tablename__ = "resumes"
    __table_args__ = (
        # The root is the only NULL parent, so this covers versions >= 2 of every chain.
        UniqueConstraint("parent_id", "version_number", name="uq_resumes_parent_version"),
    )

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    skills = Column(Text, nullable=True)  # JSON list
    experience = Column(Text, nullable=True)  # JSON list
    education = Column(Text, nullable=True)  # JSON list
    summary = Column(Text, nullable=True)
    raw_text = Column(Text, nullable=True)
    total_experience = Column(Float, nullable=True)
    parent_id = Column(Integer, ForeignKey("resumes.id", ondelete="SET NULL"), nullable=True, index=True)
    version_number = Column(Integer, nullable=False, default=1, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    @property
    def root_id(self) -> int:
        return int(self.parent_id or self.id)
