import json

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class JobDescription(Base):
    __tablename__ = "job_descriptions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    requirements = Column(Text, nullable=True)
    # JSON list of interviewer user ids mapped to this posting. Empty/NULL means "anyone".
    interviewers = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="Open", index=True)  # Open | On Hold
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    evaluations = relationship("Evaluation", back_populates="job")

    @property
    def interviewer_ids(self) -> list[int]:
        raw = self.interviewers or ""
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except Exception:
            return []
        if not isinstance(data, list):
            return []
        out: list[int] = []
        for x in data:
            try:
                out.append(int(x))
            except (TypeError, ValueError):
                continue
        return out

    @property
    def full_text(self) -> str:
        return f"{self.title}\n\n{self.description}\n\n{self.requirements or ''}".strip()
