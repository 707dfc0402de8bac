from pydantic import BaseModel, Field, field_validator


class ParsedProfile(BaseModel):
    """Output of the resume parser, as handed to intake."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: list[dict] = Field(default_factory=list)
    education: list[dict] = Field(default_factory=list)
    summary: str | None = None
    total_experience: float | None = None

    @field_validator("total_experience")
    @classmethod
    def _non_negative_years(cls, v: float | None) -> float | None:
        if v is None:
            return None
        try:
            v2 = float(v)
        except Exception:
            return None
        return v2 if v2 >= 0 else 0.0
