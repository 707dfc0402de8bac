from pydantic import BaseModel, field_validator


def _clamp_percent(v) -> float:  # noqa: ANN001
    try:
        v2 = float(v)
    except Exception:
        return 0.0
    if v2 < 0:
        return 0.0
    if v2 > 100:
        return 100.0
    return round(v2, 2)


class MatchResult(BaseModel):
    """Resume-vs-job match from the external scorer. Scores are percentages."""

    overall_match: float = 0
    skills_match: float = 0
    experience_match: float = 0
    education_match: float = 0
    skills_details: str | None = None
    experience_details: str | None = None
    education_details: str | None = None
    rejection_reason: str | None = None

    @field_validator("overall_match", "skills_match", "experience_match", "education_match", mode="before")
    @classmethod
    def _clamp_score(cls, v) -> float:  # noqa: ANN001
        return _clamp_percent(v)
