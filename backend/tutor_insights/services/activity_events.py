from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from tutor_insights.core.config import settings
from tutor_insights.core.values import as_utc, as_uuid, utcnow
from tutor_insights.models.activity import DerivedStatus, LearnerActivityEvent
from tutor_insights.models.course import CohortMember
from tutor_insights.models.user import User
from tutor_insights.schemas.activity import (
    CourseLearnerStatuses,
    LearnerStatusRow,
    StatusSummary,
    TelemetryEventIn,
)
from tutor_insights.services.event_classifier import classify_event
from tutor_insights.services.struggle import analyze_struggle

log = logging.getLogger(__name__)

# Worst status wins when picking the event that represents a learner.
STATUS_PRIORITY: tuple[DerivedStatus, ...] = (
    DerivedStatus.content_friction,
    DerivedStatus.attention_drift,
    DerivedStatus.engaged,
)


def pick_representative_event(events: Sequence[LearnerStatusRow]) -> LearnerStatusRow | None:
    if not events:
        return None
    ordered = sorted(events, key=lambda e: as_utc(e.created_at), reverse=True)
    for status in STATUS_PRIORITY:
        for event in ordered:
            if event.derived_status == status.value:
                return event
    return ordered[0]


def summarize_status_counts(rows: Iterable[LearnerStatusRow]) -> StatusSummary:
    summary = StatusSummary()
    for row in rows:
        status = row.derived_status or "unknown"
        if status in StatusSummary.model_fields:
            setattr(summary, status, getattr(summary, status) + 1)
        else:
            summary.unknown += 1
    return summary


def _row_from_event(ev: LearnerActivityEvent, *, full_name: str | None = None, email: str | None = None) -> LearnerStatusRow:
    return LearnerStatusRow(
        event_id=ev.id,
        user_id=ev.user_id,
        course_id=ev.course_id,
        full_name=full_name,
        email=email,
        module_no=ev.module_no,
        topic_id=ev.topic_id,
        event_type=ev.event_type,
        derived_status=ev.derived_status,
        status_reason=ev.status_reason,
        created_at=ev.created_at,
    )


class ActivityEventService:
    def __init__(self, db: Session):
        self.db = db

    def record_events(self, user_id, events: Sequence[TelemetryEventIn | dict[str, Any]]) -> list[LearnerActivityEvent]:
        """Classify and store a batch of telemetry events for one learner.

        The caller owns the transaction; rows are flushed, not committed.
        """
        uid = as_uuid(user_id)
        if uid is None:
            raise ValueError("user_id must be a UUID")
        if not events:
            return []

        rows: list[LearnerActivityEvent] = []
        for raw in events:
            event = raw if isinstance(raw, TelemetryEventIn) else TelemetryEventIn.model_validate(raw)
            classification = classify_event(event.event_type, event.payload)
            rows.append(
                LearnerActivityEvent(
                    user_id=uid,
                    course_id=event.course_id,
                    module_no=event.module_no,
                    topic_id=event.topic_id,
                    event_type=event.event_type,
                    payload=event.payload,
                    derived_status=classification.derived_status.value if classification.derived_status else None,
                    status_reason=classification.status_reason,
                    created_at=event.occurred_at or utcnow(),
                )
            )

        self.db.add_all(rows)
        self.db.flush()
        log.info("recorded %d activity events for user %s", len(rows), uid)
        return rows

    def _windowed_events(self, course_id, cohort_id=None) -> dict[str, list[LearnerStatusRow]]:
        cid = as_uuid(course_id)
        if cid is None:
            return {}

        window = max(1, int(settings.status_window_size))
        rn = func.row_number().over(
            partition_by=LearnerActivityEvent.user_id,
            order_by=(desc(LearnerActivityEvent.created_at), desc(LearnerActivityEvent.id)),
        ).label("rn")

        windowed = (
            select(
                LearnerActivityEvent.id.label("event_id"),
                LearnerActivityEvent.user_id.label("user_id"),
                LearnerActivityEvent.course_id.label("course_id"),
                LearnerActivityEvent.module_no.label("module_no"),
                LearnerActivityEvent.topic_id.label("topic_id"),
                LearnerActivityEvent.event_type.label("event_type"),
                LearnerActivityEvent.derived_status.label("derived_status"),
                LearnerActivityEvent.status_reason.label("status_reason"),
                LearnerActivityEvent.created_at.label("created_at"),
                rn,
            )
            .where(LearnerActivityEvent.course_id == cid)
            .subquery()
        )

        stmt = (
            select(windowed, User.full_name, User.email)
            .outerjoin(User, User.id == windowed.c.user_id)
            .where(windowed.c.rn <= window)
            .order_by(desc(windowed.c.created_at))
        )

        if cohort_id is not None:
            coh = as_uuid(cohort_id)
            if coh is None:
                return {}
            members = select(CohortMember.user_id).where(CohortMember.cohort_id == coh, CohortMember.user_id.is_not(None))
            stmt = stmt.where(windowed.c.user_id.in_(members))

        grouped: dict[str, list[LearnerStatusRow]] = {}
        for row in self.db.execute(stmt).mappings():
            status_row = LearnerStatusRow(
                event_id=row["event_id"],
                user_id=row["user_id"],
                course_id=row["course_id"],
                full_name=row["full_name"],
                email=row["email"],
                module_no=row["module_no"],
                topic_id=row["topic_id"],
                event_type=row["event_type"],
                derived_status=row["derived_status"],
                status_reason=row["status_reason"],
                created_at=row["created_at"],
            )
            grouped.setdefault(str(status_row.user_id), []).append(status_row)
        return grouped

    def get_latest_statuses(self, course_id, cohort_id=None, now: datetime | None = None) -> list[LearnerStatusRow]:
        """One row per learner: the representative recent event plus a struggle analysis.

        Learners are ordered by most recent activity.
        """
        now = now or utcnow()
        grouped = self._windowed_events(course_id, cohort_id)

        summaries: list[LearnerStatusRow] = []
        for user_id, events in grouped.items():
            representative = pick_representative_event(events)
            if representative is None:
                continue
            analysis = analyze_struggle(events, now=now)
            summaries.append(representative.model_copy(update={"analysis": analysis}))
            log.debug("learner %s: status=%s struggle=%s", user_id, representative.derived_status, analysis.dominant_struggle)

        log.info("computed latest statuses for %d learners in course %s", len(summaries), course_id)
        return summaries

    def get_course_learner_statuses(self, course_id, cohort_id=None, now: datetime | None = None) -> CourseLearnerStatuses:
        learners = self.get_latest_statuses(course_id, cohort_id, now=now)
        return CourseLearnerStatuses(learners=learners, summary=summarize_status_counts(learners))

    def get_learner_history(
        self,
        user_id,
        course_id,
        limit: int | None = None,
        before: datetime | None = None,
    ) -> list[LearnerStatusRow]:
        """Newest-first page of a learner's events, strictly older than ``before``."""
        uid = as_uuid(user_id)
        cid = as_uuid(course_id)
        if uid is None or cid is None:
            return []

        limit = settings.history_default_limit if limit is None else int(limit)
        limit = max(1, min(limit, int(settings.history_max_limit)))

        stmt = select(LearnerActivityEvent).where(
            LearnerActivityEvent.user_id == uid,
            LearnerActivityEvent.course_id == cid,
        )
        if before is not None:
            stmt = stmt.where(LearnerActivityEvent.created_at < before)
        stmt = stmt.order_by(desc(LearnerActivityEvent.created_at), desc(LearnerActivityEvent.id)).limit(limit)

        return [_row_from_event(ev) for ev in self.db.scalars(stmt).all()]
