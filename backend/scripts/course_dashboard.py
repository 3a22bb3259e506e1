from __future__ import annotations

import argparse
import json
import logging
import os
import sys

# Allow running from the repository root without installing the package.
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from tutor_insights.core.config import settings
from tutor_insights.db.session import SessionLocal
from tutor_insights.services.activity_events import ActivityEventService
from tutor_insights.services.chatbot_stats import ChatbotStatsService


def build_dashboard(db, *, course_id: str, cohort_id: str | None = None) -> dict:
    statuses = ActivityEventService(db).get_course_learner_statuses(course_id, cohort_id)
    stats = ChatbotStatsService(db)
    return {
        "courseId": course_id,
        "cohortId": cohort_id,
        "activity": statuses.model_dump(mode="json", by_alias=True),
        "chatbotStats": [m.model_dump(mode="json", by_alias=True) for m in stats.session_stats(course_id, cohort_id)],
        "questionTypes": stats.question_type_analysis(course_id, cohort_id).model_dump(mode="json", by_alias=True),
        "learners": [r.model_dump(mode="json", by_alias=True) for r in stats.per_learner_stats(course_id, cohort_id)],
        "modules": [r.model_dump(mode="json", by_alias=True) for r in stats.module_activity_overview(course_id, cohort_id)],
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print the tutor dashboard analytics for a course as JSON")
    parser.add_argument("course_id")
    parser.add_argument("--cohort", dest="cohort_id", default=None)
    parser.add_argument("--indent", type=int, default=2)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(settings.log_level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    with SessionLocal() as db:
        dashboard = build_dashboard(db, course_id=args.course_id, cohort_id=args.cohort_id)

    print(json.dumps(dashboard, ensure_ascii=False, indent=args.indent))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
