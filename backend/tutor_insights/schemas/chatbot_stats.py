from __future__ import annotations

import uuid
from datetime import datetime

from tutor_insights.schemas.base import CamelSchema


class TopicSessionStats(CamelSchema):
    topic_id: uuid.UUID | None
    topic_name: str
    session_count: int = 0
    message_count: int = 0
    last_message_at: datetime | None = None


class ModuleSessionStats(CamelSchema):
    module_no: int
    module_name: str
    topics: list[TopicSessionStats]


class TopicQuestionBreakdown(CamelSchema):
    topic_id: uuid.UUID | None
    topic_name: str
    module_name: str
    total_questions: int
    predefined_count: int
    custom_count: int


class QuestionTypeAnalysis(CamelSchema):
    total_questions: int = 0
    predefined_questions: int = 0
    custom_questions: int = 0
    predefined_percentage: int = 0
    custom_percentage: int = 0
    breakdown: list[TopicQuestionBreakdown] = []


class LearnerChatStats(CamelSchema):
    user_id: uuid.UUID
    user_name: str | None
    user_email: str | None
    total_sessions: int
    total_questions: int
    predefined_count: int
    custom_count: int
    predefined_percentage: int
    custom_percentage: int
    most_active_module: str | None
    last_activity_at: datetime | None


class CustomQuestion(CamelSchema):
    question_text: str
    topic_name: str
    module_name: str
    asked_at: datetime


class ModuleActivity(CamelSchema):
    module_no: int
    module_name: str
    total_sessions: int
    total_questions: int
    custom_question_count: int
    custom_question_percentage: int


class PromptUsage(CamelSchema):
    module_no: int
    typed_count: int
    limit: int
    remaining: int
