"""Read-only chatbot usage statistics for the tutor dashboard.

Sessions and user questions are loaded once per call, then folded into the
different views. A question counts as *predefined* when it fuzzy-matches one of
the prompt suggestions of its own topic, otherwise it is *custom*.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutor_insights.core.values import as_utc, as_uuid
from tutor_insights.models.chat import RagChatMessage, RagChatSession
from tutor_insights.models.course import CohortMember, Enrollment, Topic, TopicPromptSuggestion
from tutor_insights.models.user import User
from tutor_insights.schemas.chatbot_stats import (
    CustomQuestion,
    LearnerChatStats,
    ModuleActivity,
    ModuleSessionStats,
    QuestionTypeAnalysis,
    TopicQuestionBreakdown,
    TopicSessionStats,
)
from tutor_insights.services.question_matching import matches_any, percentage

log = logging.getLogger(__name__)

UNKNOWN_MODULE_NO = 999
UNKNOWN_MODULE_NAME = "Unknown Module"
UNKNOWN_TOPIC_NAME = "Unknown Topic"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PromptsByTopic = Mapping[uuid.UUID, Sequence[str]]


@dataclass(frozen=True)
class TopicInfo:
    topic_id: uuid.UUID
    topic_name: str
    module_no: int
    module_name: str


@dataclass(frozen=True)
class ChatQuestion:
    content: str
    created_at: datetime


@dataclass
class ChatSessionRecord:
    session_id: uuid.UUID
    user_id: uuid.UUID
    topic: TopicInfo | None = None
    last_message_at: datetime | None = None
    questions: list[ChatQuestion] = field(default_factory=list)
    user_name: str | None = None
    user_email: str | None = None

    @property
    def topic_id(self) -> uuid.UUID | None:
        return self.topic.topic_id if self.topic else None

    @property
    def module_no(self) -> int:
        return self.topic.module_no if self.topic else UNKNOWN_MODULE_NO

    @property
    def module_name(self) -> str:
        return (self.topic.module_name if self.topic else None) or UNKNOWN_MODULE_NAME

    @property
    def topic_name(self) -> str:
        return (self.topic.topic_name if self.topic else None) or UNKNOWN_TOPIC_NAME


def is_predefined(question: str, topic_id: uuid.UUID | None, prompts_by_topic: PromptsByTopic) -> bool:
    if topic_id is None:
        return False
    return matches_any(question, prompts_by_topic.get(topic_id, ()))


def fold_session_stats(sessions: Sequence[ChatSessionRecord]) -> list[ModuleSessionStats]:
    modules: dict[int, ModuleSessionStats] = {}
    for s in sessions:
        module = modules.get(s.module_no)
        if module is None:
            module = ModuleSessionStats(module_no=s.module_no, module_name=s.module_name, topics=[])
            modules[s.module_no] = module

        topic = next((t for t in module.topics if t.topic_id == s.topic_id), None)
        if topic is None:
            topic = TopicSessionStats(topic_id=s.topic_id, topic_name=s.topic_name)
            module.topics.append(topic)

        topic.session_count += 1
        topic.message_count += len(s.questions)
        if s.last_message_at is not None:
            if topic.last_message_at is None or as_utc(s.last_message_at) > as_utc(topic.last_message_at):
                topic.last_message_at = s.last_message_at

    return sorted(modules.values(), key=lambda m: m.module_no)


def fold_question_type_analysis(
    sessions: Sequence[ChatSessionRecord],
    prompts_by_topic: PromptsByTopic,
    topic_id: uuid.UUID | None = None,
) -> QuestionTypeAnalysis:
    total_predefined = 0
    total_custom = 0
    breakdown: dict[uuid.UUID | None, dict] = {}

    for s in sessions:
        if topic_id is not None and s.topic_id != topic_id:
            continue
        for q in s.questions:
            predefined = is_predefined(q.content, s.topic_id, prompts_by_topic)
            entry = breakdown.setdefault(
                s.topic_id,
                {
                    "topic_id": s.topic_id,
                    "topic_name": s.topic_name,
                    "module_name": s.module_name,
                    "predefined_count": 0,
                    "custom_count": 0,
                },
            )
            if predefined:
                total_predefined += 1
                entry["predefined_count"] += 1
            else:
                total_custom += 1
                entry["custom_count"] += 1

    total = total_predefined + total_custom
    return QuestionTypeAnalysis(
        total_questions=total,
        predefined_questions=total_predefined,
        custom_questions=total_custom,
        predefined_percentage=percentage(total_predefined, total),
        custom_percentage=percentage(total_custom, total),
        breakdown=[
            TopicQuestionBreakdown(total_questions=e["predefined_count"] + e["custom_count"], **e)
            for e in breakdown.values()
        ],
    )


def most_active_module(module_activity: Mapping[str, int]) -> str | None:
    """Module with the most sessions; ties go to the lexically first name."""
    if not module_activity:
        return None
    return min(module_activity.items(), key=lambda kv: (-kv[1], kv[0]))[0]


def fold_per_learner_stats(
    sessions: Sequence[ChatSessionRecord],
    prompts_by_topic: PromptsByTopic,
) -> list[LearnerChatStats]:
    learners: dict[uuid.UUID, dict] = {}

    for s in sessions:
        stats = learners.setdefault(
            s.user_id,
            {
                "user_id": s.user_id,
                "user_name": s.user_name,
                "user_email": s.user_email,
                "total_sessions": 0,
                "total_questions": 0,
                "predefined_count": 0,
                "custom_count": 0,
                "module_activity": {},
                "last_activity_at": None,
            },
        )
        stats["total_sessions"] += 1
        stats["module_activity"][s.module_name] = stats["module_activity"].get(s.module_name, 0) + 1

        for q in s.questions:
            stats["total_questions"] += 1
            last = stats["last_activity_at"]
            if last is None or as_utc(q.created_at) > as_utc(last):
                stats["last_activity_at"] = q.created_at
            if is_predefined(q.content, s.topic_id, prompts_by_topic):
                stats["predefined_count"] += 1
            else:
                stats["custom_count"] += 1

    rows = []
    for stats in learners.values():
        total = stats["total_questions"]
        rows.append(
            LearnerChatStats(
                user_id=stats["user_id"],
                user_name=stats["user_name"],
                user_email=stats["user_email"],
                total_sessions=stats["total_sessions"],
                total_questions=total,
                predefined_count=stats["predefined_count"],
                custom_count=stats["custom_count"],
                predefined_percentage=percentage(stats["predefined_count"], total),
                custom_percentage=percentage(stats["custom_count"], total),
                most_active_module=most_active_module(stats["module_activity"]),
                last_activity_at=stats["last_activity_at"],
            )
        )

    rows.sort(key=lambda r: as_utc(r.last_activity_at) if r.last_activity_at else _EPOCH, reverse=True)
    return rows


def fold_learner_custom_questions(
    sessions: Sequence[ChatSessionRecord],
    prompts_by_topic: PromptsByTopic,
) -> list[CustomQuestion]:
    questions: list[CustomQuestion] = []
    for s in sessions:
        for q in s.questions:
            if is_predefined(q.content, s.topic_id, prompts_by_topic):
                continue
            questions.append(
                CustomQuestion(
                    question_text=q.content,
                    topic_name=s.topic_name,
                    module_name=s.module_name,
                    asked_at=q.created_at,
                )
            )
    questions.sort(key=lambda q: as_utc(q.asked_at), reverse=True)
    return questions


def fold_module_activity_overview(
    sessions: Sequence[ChatSessionRecord],
    prompts_by_topic: PromptsByTopic,
) -> list[ModuleActivity]:
    modules: dict[tuple[int, str], dict] = {}

    for s in sessions:
        key = (s.module_no, s.module_name)
        stats = modules.setdefault(key, {"total_sessions": 0, "total_questions": 0, "custom_question_count": 0})
        stats["total_sessions"] += 1
        for q in s.questions:
            stats["total_questions"] += 1
            if not is_predefined(q.content, s.topic_id, prompts_by_topic):
                stats["custom_question_count"] += 1

    rows = [
        ModuleActivity(
            module_no=module_no,
            module_name=module_name,
            total_sessions=stats["total_sessions"],
            total_questions=stats["total_questions"],
            custom_question_count=stats["custom_question_count"],
            custom_question_percentage=percentage(stats["custom_question_count"], stats["total_questions"]),
        )
        for (module_no, module_name), stats in modules.items()
    ]
    rows.sort(key=lambda r: r.total_sessions, reverse=True)
    return rows


class ChatbotStatsService:
    def __init__(self, db: Session):
        self.db = db

    def target_learner_ids(self, course_id, cohort_id=None, learner_id=None) -> list[uuid.UUID]:
        """Explicit learner, else cohort members, else everyone enrolled in the course."""
        if learner_id is not None:
            lid = as_uuid(learner_id)
            return [lid] if lid is not None else []

        if cohort_id is not None:
            coh = as_uuid(cohort_id)
            if coh is None:
                return []
            return list(
                self.db.scalars(
                    select(CohortMember.user_id).where(
                        CohortMember.cohort_id == coh,
                        CohortMember.user_id.is_not(None),
                    )
                ).all()
            )

        cid = as_uuid(course_id)
        if cid is None:
            return []
        return list(self.db.scalars(select(Enrollment.user_id).where(Enrollment.course_id == cid)).all())

    def _load_sessions(self, course_id, learner_ids: Sequence[uuid.UUID], topic_id=None) -> list[ChatSessionRecord]:
        cid = as_uuid(course_id)
        if cid is None or not learner_ids:
            return []

        stmt = select(RagChatSession).where(
            RagChatSession.course_id == cid,
            RagChatSession.user_id.in_(list(learner_ids)),
        )
        if topic_id is not None:
            stmt = stmt.where(RagChatSession.topic_id == as_uuid(topic_id))
        chat_sessions = self.db.scalars(stmt.order_by(RagChatSession.created_at, RagChatSession.id)).all()
        if not chat_sessions:
            return []

        topic_ids = {s.topic_id for s in chat_sessions if s.topic_id is not None}
        topics: dict[uuid.UUID, TopicInfo] = {}
        if topic_ids:
            for t in self.db.scalars(select(Topic).where(Topic.id.in_(topic_ids))).all():
                topics[t.id] = TopicInfo(
                    topic_id=t.id,
                    topic_name=t.topic_name,
                    module_no=t.module_no,
                    module_name=t.module_name,
                )

        user_ids = {s.user_id for s in chat_sessions}
        users = {
            uid: (name, email)
            for uid, name, email in self.db.execute(
                select(User.id, User.full_name, User.email).where(User.id.in_(user_ids))
            ).all()
        }

        records: dict[uuid.UUID, ChatSessionRecord] = {}
        for s in chat_sessions:
            name, email = users.get(s.user_id, (None, None))
            records[s.id] = ChatSessionRecord(
                session_id=s.id,
                user_id=s.user_id,
                topic=topics.get(s.topic_id) if s.topic_id is not None else None,
                last_message_at=s.last_message_at,
                user_name=name,
                user_email=email,
            )

        message_rows = self.db.execute(
            select(RagChatMessage.session_id, RagChatMessage.content, RagChatMessage.created_at)
            .where(RagChatMessage.session_id.in_(list(records)), RagChatMessage.role == "user")
            .order_by(RagChatMessage.created_at)
        ).all()
        for session_id, content, created_at in message_rows:
            records[session_id].questions.append(ChatQuestion(content=content or "", created_at=created_at))

        return list(records.values())

    def _load_prompts(self, course_id, topic_id=None) -> dict[uuid.UUID, list[str]]:
        cid = as_uuid(course_id)
        if cid is None:
            return {}
        stmt = select(TopicPromptSuggestion.topic_id, TopicPromptSuggestion.prompt_text).where(
            TopicPromptSuggestion.course_id == cid,
            TopicPromptSuggestion.topic_id.is_not(None),
        )
        if topic_id is not None:
            stmt = stmt.where(TopicPromptSuggestion.topic_id == as_uuid(topic_id))

        prompts: dict[uuid.UUID, list[str]] = {}
        for tid, text in self.db.execute(stmt.order_by(TopicPromptSuggestion.display_order)).all():
            prompts.setdefault(tid, []).append(text)
        return prompts

    def session_stats(self, course_id, cohort_id=None, learner_id=None) -> list[ModuleSessionStats]:
        learner_ids = self.target_learner_ids(course_id, cohort_id, learner_id)
        if not learner_ids:
            return []
        result = fold_session_stats(self._load_sessions(course_id, learner_ids))
        log.info("chatbot session stats for course %s: %d modules", course_id, len(result))
        return result

    def question_type_analysis(self, course_id, cohort_id=None, learner_id=None, topic_id=None) -> QuestionTypeAnalysis:
        learner_ids = self.target_learner_ids(course_id, cohort_id, learner_id)
        if not learner_ids or (topic_id is not None and as_uuid(topic_id) is None):
            return QuestionTypeAnalysis()
        sessions = self._load_sessions(course_id, learner_ids, topic_id=topic_id)
        if not any(s.questions for s in sessions):
            return QuestionTypeAnalysis()
        prompts = self._load_prompts(course_id, topic_id=topic_id)
        result = fold_question_type_analysis(sessions, prompts, topic_id=as_uuid(topic_id))
        log.info(
            "question type analysis for course %s: %d questions, %d%% custom",
            course_id,
            result.total_questions,
            result.custom_percentage,
        )
        return result

    def per_learner_stats(self, course_id, cohort_id=None, learner_id=None) -> list[LearnerChatStats]:
        learner_ids = self.target_learner_ids(course_id, cohort_id, learner_id)
        if not learner_ids:
            return []
        sessions = self._load_sessions(course_id, learner_ids)
        return fold_per_learner_stats(sessions, self._load_prompts(course_id))

    def learner_custom_questions(self, course_id, learner_id, cohort_id=None) -> list[CustomQuestion]:
        lid = as_uuid(learner_id)
        if lid is None:
            return []
        if cohort_id is not None and lid not in self.target_learner_ids(course_id, cohort_id):
            return []
        sessions = self._load_sessions(course_id, [lid])
        return fold_learner_custom_questions(sessions, self._load_prompts(course_id))

    def module_activity_overview(self, course_id, cohort_id=None) -> list[ModuleActivity]:
        learner_ids = self.target_learner_ids(course_id, cohort_id)
        if not learner_ids:
            return []
        sessions = self._load_sessions(course_id, learner_ids)
        return fold_module_activity_overview(sessions, self._load_prompts(course_id))
