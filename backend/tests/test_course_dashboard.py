import importlib.util
import json
from datetime import timedelta
from pathlib import Path

from tutor_insights.services.activity_events import ActivityEventService

_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "course_dashboard.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("course_dashboard", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_build_dashboard_is_json_ready(db, course_factory, now):
    dashboard_script = _load_script()

    topic = course_factory.topic(1, "Basics", "Variables", ["Can you give me an example?"])
    ada = course_factory.learner("Ada")
    course_id = course_factory.course.id
    course_factory.chat(ada, topic, ["Can you give me an example", "Why?"], start=now)
    ActivityEventService(db).record_events(
        ada.id,
        [
            {"course_id": course_id, "event_type": "video.play", "occurred_at": now},
            {"course_id": course_id, "event_type": "idle.start", "occurred_at": now + timedelta(minutes=5)},
        ],
    )

    dashboard = dashboard_script.build_dashboard(db, course_id=str(course_id))
    encoded = json.loads(json.dumps(dashboard))

    assert encoded["courseId"] == str(course_id)
    assert encoded["cohortId"] is None
    assert encoded["activity"]["summary"]["attention_drift"] == 1
    [learner] = encoded["activity"]["learners"]
    assert learner["derivedStatus"] == "attention_drift"
    assert encoded["questionTypes"]["predefinedPercentage"] == 50
    assert encoded["learners"][0]["userName"] == "Ada"
    assert encoded["chatbotStats"][0]["moduleName"] == "Basics"
    assert encoded["modules"][0]["totalSessions"] == 1
