"""Request and response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dsegrader.feedback.categories import Category, normalize_category


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, as the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EssayScores(CamelModel):
    content: int = Field(ge=0, le=100)
    language: int = Field(ge=0, le=100)
    organization: int = Field(ge=0, le=100)
    overall: int = Field(ge=0, le=100)

    def to_raw(self) -> "RawScores":
        from dsegrader.grading.policy import to_raw

        content = to_raw(self.content)
        language = to_raw(self.language)
        organization = to_raw(self.organization)
        return RawScores(
            content=content,
            language=language,
            organization=organization,
            overall=content + language + organization,
        )


class RawScores(CamelModel):
    """DSE-style levels: 0-7 per criterion, 0-21 in total."""

    content: int = Field(ge=0, le=7)
    language: int = Field(ge=0, le=7)
    organization: int = Field(ge=0, le=7)
    overall: int = Field(ge=0, le=21)


class FeedbackItem(CamelModel):
    category: Category = Field(validation_alias=AliasChoices("category", "type"))
    segment: str
    suggestion: str
    ordinal: int = Field(ge=1, validation_alias=AliasChoices("ordinal", "number"))

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: object) -> Category:
        return normalize_category(value)


class DetailedFeedback(CamelModel):
    scores: EssayScores
    feedback_items: list[FeedbackItem] = Field(default_factory=list)
    highlighted_content: str


class EssayCreate(BaseModel):
    title: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    content: str = Field(min_length=1)
    image_url: str | None = None


class FeedbackSummary(CamelModel):
    id: int
    content_score: int
    language_score: int
    organization_score: int
    total_score: int
    updated_at: datetime


class EssayRead(CamelModel):
    id: int
    title: str
    prompt: str
    content: str
    image_url: str | None
    author_id: str
    created_at: datetime
    updated_at: datetime
    feedback: FeedbackSummary | None = None


class EvaluateRequest(BaseModel):
    question: str = Field(min_length=1)
    content: str = Field(min_length=1)


class OCRExtractResponse(CamelModel):
    text: str
    provider: str
    confidence: float
    pages: int = 1
