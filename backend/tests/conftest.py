import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tutor_insights.db.base import Base
from tutor_insights.db import session as session_module

# Import models so that they are registered in Base.metadata before create_all.
from tutor_insights.models.user import User
from tutor_insights.models.course import Cohort, CohortMember, Course, Enrollment, Topic, TopicPromptSuggestion
from tutor_insights.models.activity import LearnerActivityEvent  # noqa: F401
from tutor_insights.models.chat import RagChatMessage, RagChatSession
from tutor_insights.models.prompt_usage import ModulePromptUsage  # noqa: F401


# Configure test DB (SQLite in-memory) at import time so everything importing
# tutor_insights.db.session.SessionLocal gets the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db():
    # Each test runs in its own transaction that is rolled back afterwards.
    connection = _engine.connect()
    transaction = connection.begin()
    session = session_module.sessionmaker(autocommit=False, autoflush=False, bind=connection)()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def now():
    return NOW


class CourseFactory:
    """Builds a small course graph (users, topics, cohorts, chats) for a test."""

    def __init__(self, db):
        self.db = db
        self.course = Course(title=f"Course {uuid.uuid4().hex[:6]}")
        db.add(self.course)
        db.flush()

    def learner(self, name: str, *, enrolled: bool = True) -> User:
        user = User(full_name=name, email=f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:6]}@example.com")
        self.db.add(user)
        self.db.flush()
        if enrolled:
            self.db.add(Enrollment(user_id=user.id, course_id=self.course.id))
            self.db.flush()
        return user

    def topic(self, module_no: int, module_name: str, topic_name: str, prompts: list[str] | None = None) -> Topic:
        topic = Topic(course_id=self.course.id, module_no=module_no, module_name=module_name, topic_name=topic_name)
        self.db.add(topic)
        self.db.flush()
        for i, text in enumerate(prompts or []):
            self.db.add(TopicPromptSuggestion(course_id=self.course.id, topic_id=topic.id, prompt_text=text, display_order=i))
        self.db.flush()
        return topic

    def cohort(self, name: str, members: list[User]) -> Cohort:
        cohort = Cohort(course_id=self.course.id, name=name)
        self.db.add(cohort)
        self.db.flush()
        for m in members:
            self.db.add(CohortMember(cohort_id=cohort.id, user_id=m.id, email=m.email or ""))
        # Invited by email only, no account yet.
        self.db.add(CohortMember(cohort_id=cohort.id, user_id=None, email="pending@example.com"))
        self.db.flush()
        return cohort

    def chat(
        self,
        user: User,
        topic: Topic | None,
        questions: list[str],
        *,
        start: datetime = NOW,
        answers: bool = True,
    ) -> RagChatSession:
        session = RagChatSession(
            user_id=user.id,
            course_id=self.course.id,
            topic_id=topic.id if topic is not None else None,
            created_at=start,
            last_message_at=start + timedelta(minutes=len(questions)) if questions else None,
        )
        self.db.add(session)
        self.db.flush()
        for i, text in enumerate(questions):
            asked_at = start + timedelta(minutes=i)
            self.db.add(RagChatMessage(session_id=session.id, user_id=user.id, role="user", content=text, created_at=asked_at))
            if answers:
                self.db.add(
                    RagChatMessage(session_id=session.id, role="assistant", content="Here is an answer.", created_at=asked_at)
                )
        self.db.flush()
        return session


@pytest.fixture()
def course_factory(db):
    return CourseFactory(db)
