from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutor_insights.schemas.base import CamelSchema


class TelemetryEventIn(CamelSchema):
    course_id: uuid.UUID
    module_no: int | None = None
    topic_id: uuid.UUID | None = None
    event_type: str = Field(min_length=1, max_length=100)
    payload: Any = None
    occurred_at: datetime | None = None

    @field_validator("event_type")
    @classmethod
    def _reject_blank_event_type(cls, value: str) -> str:
        # Stored as sent; only the blank check ignores whitespace.
        if not value.strip():
            raise ValueError("event_type must not be blank")
        return value


class EventPayload(BaseModel):
    """Typed view of the free-form telemetry payload; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    reason: str | None = None


class StruggleAnalysis(CamelSchema):
    dominant_struggle: str
    severity: str
    scores: dict[str, float]
    content_friction: bool
    explanation: str
    signals: list[str]


class LearnerStatusRow(CamelSchema):
    event_id: uuid.UUID
    user_id: uuid.UUID
    course_id: uuid.UUID
    full_name: str | None = None
    email: str | None = None
    module_no: int | None = None
    topic_id: uuid.UUID | None = None
    event_type: str
    derived_status: str | None = None
    status_reason: str | None = None
    created_at: datetime
    analysis: StruggleAnalysis | None = None


class StatusSummary(BaseModel):
    engaged: int = 0
    attention_drift: int = 0
    content_friction: int = 0
    unknown: int = 0


class CourseLearnerStatuses(CamelSchema):
    learners: list[LearnerStatusRow]
    summary: StatusSummary
