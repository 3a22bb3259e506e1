"""create tutor analytics schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="learner"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_courses_title", "courses", ["title"], unique=False)

    op.create_table(
        "topics",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_no", sa.Integer(), nullable=False),
        sa.Column("module_name", sa.String(length=300), nullable=False),
        sa.Column("topic_name", sa.String(length=300), nullable=False),
        sa.Column("topic_number", sa.Integer(), nullable=True),
    )
    op.create_index("ix_topics_course_id", "topics", ["course_id"], unique=False)
    op.create_index("ix_topics_module_no", "topics", ["module_no"], unique=False)

    op.create_table(
        "topic_prompt_suggestions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_topic_prompt_suggestions_course_id", "topic_prompt_suggestions", ["course_id"], unique=False)
    op.create_index("ix_topic_prompt_suggestions_topic_id", "topic_prompt_suggestions", ["topic_id"], unique=False)

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"], unique=False)
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"], unique=False)

    op.create_table(
        "cohorts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_cohorts_course_id", "cohorts", ["course_id"], unique=False)

    op.create_table(
        "cohort_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("cohorts.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
    )
    op.create_index("ix_cohort_members_cohort_id", "cohort_members", ["cohort_id"], unique=False)
    op.create_index("ix_cohort_members_user_id", "cohort_members", ["user_id"], unique=False)

    op.create_table(
        "learner_activity_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_no", sa.Integer(), nullable=True),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("derived_status", sa.String(length=32), nullable=True),
        sa.Column("status_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_learner_activity_events_user_id", "learner_activity_events", ["user_id"], unique=False)
    op.create_index("ix_learner_activity_events_course_id", "learner_activity_events", ["course_id"], unique=False)
    op.create_index("ix_learner_activity_events_event_type", "learner_activity_events", ["event_type"], unique=False)
    op.create_index(
        "ix_learner_activity_events_course_user_created",
        "learner_activity_events",
        ["course_id", "user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "rag_chat_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("topic_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("topics.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rag_chat_sessions_user_id", "rag_chat_sessions", ["user_id"], unique=False)
    op.create_index("ix_rag_chat_sessions_course_id", "rag_chat_sessions", ["course_id"], unique=False)
    op.create_index("ix_rag_chat_sessions_topic_id", "rag_chat_sessions", ["topic_id"], unique=False)

    op.create_table(
        "rag_chat_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rag_chat_sessions.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_rag_chat_messages_session_id", "rag_chat_messages", ["session_id"], unique=False)
    op.create_index("ix_rag_chat_messages_role", "rag_chat_messages", ["role"], unique=False)

    op.create_table(
        "module_prompt_usage",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_no", sa.Integer(), nullable=False),
        sa.Column("typed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "course_id", "module_no", name="uq_prompt_usage_user_course_module"),
    )
    op.create_index("ix_module_prompt_usage_user_id", "module_prompt_usage", ["user_id"], unique=False)
    op.create_index("ix_module_prompt_usage_course_id", "module_prompt_usage", ["course_id"], unique=False)


def downgrade() -> None:
    op.drop_table("module_prompt_usage")
    op.drop_table("rag_chat_messages")
    op.drop_table("rag_chat_sessions")
    op.drop_table("learner_activity_events")
    op.drop_table("cohort_members")
    op.drop_table("cohorts")
    op.drop_table("enrollments")
    op.drop_table("topic_prompt_suggestions")
    op.drop_table("topics")
    op.drop_table("courses")
    op.drop_table("users")
