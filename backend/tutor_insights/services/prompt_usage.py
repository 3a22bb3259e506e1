from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from tutor_insights.core.config import settings
from tutor_insights.core.values import as_uuid, utcnow
from tutor_insights.models.prompt_usage import ModulePromptUsage
from tutor_insights.schemas.chatbot_stats import PromptUsage

log = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class PromptUsageService:
    """Per-module quota of typed (custom) chatbot questions for a learner."""

    def __init__(self, db: Session):
        self.db = db

    def _count(self, uid: uuid.UUID, cid: uuid.UUID, module_no: int) -> int | None:
        # Column select, not the entity: the identity map may hold a stale counter.
        return self.db.scalar(
            select(ModulePromptUsage.typed_count).where(
                ModulePromptUsage.user_id == uid,
                ModulePromptUsage.course_id == cid,
                ModulePromptUsage.module_no == int(module_no),
            )
        )

    def get_usage_count(self, user_id, course_id, module_no: int) -> int:
        uid = as_uuid(user_id)
        cid = as_uuid(course_id)
        if uid is None or cid is None:
            return 0
        return int(self._count(uid, cid, module_no) or 0)

    def increment_usage(self, user_id, course_id, module_no: int) -> int:
        """Atomically add one typed prompt and return the new count."""
        uid = as_uuid(user_id)
        cid = as_uuid(course_id)
        if uid is None or cid is None:
            raise ValueError("user_id and course_id must be UUIDs")

        now = utcnow()
        insert = _UPSERT_DIALECTS[self.db.get_bind().dialect.name]
        stmt = insert(ModulePromptUsage).values(
            id=uuid.uuid4(),
            user_id=uid,
            course_id=cid,
            module_no=int(module_no),
            typed_count=1,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ModulePromptUsage.user_id, ModulePromptUsage.course_id, ModulePromptUsage.module_no],
            set_={"typed_count": ModulePromptUsage.typed_count + 1, "updated_at": now},
        )
        self.db.execute(stmt)

        count = int(self._count(uid, cid, module_no) or 0)
        if count > settings.prompt_limit_per_module:
            log.warning(
                "user %s exceeded typed prompt limit in course %s module %s (%d)",
                uid,
                cid,
                module_no,
                count,
            )
        return count

    def usage(self, user_id, course_id, module_no: int) -> PromptUsage:
        count = self.get_usage_count(user_id, course_id, module_no)
        limit = int(settings.prompt_limit_per_module)
        return PromptUsage(module_no=int(module_no), typed_count=count, limit=limit, remaining=max(0, limit - count))
