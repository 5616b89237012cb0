from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TipKind = Literal["good", "improve"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Tip(_CamelModel):
    kind: TipKind = "improve"
    text: str = Field(min_length=1)
    explanation: str | None = None

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("tip text must not be blank")
        return stripped


class CategoryFeedback(_CamelModel):
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    tips: list[Tip] = Field(default_factory=list)


class ATSFeedback(_CamelModel):
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    suggestions: list[Tip] = Field(default_factory=list)


class Feedback(_CamelModel):
    """Canonical scored feedback, as produced by the response normalizer."""

    overall_rating: float = Field(ge=0.0, le=100.0)
    ats: ATSFeedback = Field(default_factory=ATSFeedback)
    tone_and_style: CategoryFeedback = Field(default_factory=CategoryFeedback)
    content: CategoryFeedback = Field(default_factory=CategoryFeedback)
    structure: CategoryFeedback = Field(default_factory=CategoryFeedback)
    skills: CategoryFeedback = Field(default_factory=CategoryFeedback)

    def categories(self) -> dict[str, CategoryFeedback]:
        return {
            "toneAndStyle": self.tone_and_style,
            "content": self.content,
            "structure": self.structure,
            "skills": self.skills,
        }
