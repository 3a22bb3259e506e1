import uuid
from datetime import timedelta

from tutor_insights.services.chatbot_stats import (
    ChatbotStatsService,
    ChatQuestion,
    ChatSessionRecord,
    TopicInfo,
    fold_module_activity_overview,
    fold_per_learner_stats,
    fold_question_type_analysis,
    most_active_module,
)

PROMPTS = [
    "What is the main idea of this topic?",
    "Can you give me an example?",
    "Summarize this topic in simple words",
]
PREDEFINED = [
    "what is the main idea of this topic",
    "Can you give me an example",
    "Can you give me an example?",
    "Summarize this topic in simple words.",
    "summarise this topic in simple words",
    "What is the main idea of this topic?",
]
CUSTOM = [
    "Why does my recursion never terminate?",
    "How is this different from last week's lab?",
    "Is there a cheat sheet for the exam?",
    "My code crashes on line 12, why?",
]


def _topic(module_no=1, module_name="Basics", topic_name="Variables"):
    return TopicInfo(topic_id=uuid.uuid4(), topic_name=topic_name, module_no=module_no, module_name=module_name)


def _session(user_id, topic, questions, now):
    return ChatSessionRecord(
        session_id=uuid.uuid4(),
        user_id=user_id,
        topic=topic,
        questions=[ChatQuestion(content=q, created_at=now + timedelta(minutes=i)) for i, q in enumerate(questions)],
    )


def test_question_split_sums_to_one_hundred(now):
    topic = _topic()
    sessions = [_session(uuid.uuid4(), topic, PREDEFINED + CUSTOM, now)]

    result = fold_question_type_analysis(sessions, {topic.topic_id: PROMPTS})

    assert result.total_questions == 10
    assert result.predefined_questions == 6
    assert result.custom_questions == 4
    assert result.predefined_percentage == 60
    assert result.custom_percentage == 40
    assert result.predefined_percentage + result.custom_percentage == 100
    [row] = result.breakdown
    assert (row.topic_name, row.total_questions, row.predefined_count, row.custom_count) == ("Variables", 10, 6, 4)


def test_prompts_only_match_within_their_own_topic(now):
    a = _topic(topic_name="A")
    b = _topic(topic_name="B")
    sessions = [_session(uuid.uuid4(), b, ["Can you give me an example?"], now)]

    result = fold_question_type_analysis(sessions, {a.topic_id: PROMPTS})
    assert result.custom_questions == 1
    assert result.predefined_questions == 0


def test_question_type_analysis_with_no_questions_is_all_zero():
    result = fold_question_type_analysis([], {})
    assert result.model_dump() == {
        "total_questions": 0,
        "predefined_questions": 0,
        "custom_questions": 0,
        "predefined_percentage": 0,
        "custom_percentage": 0,
        "breakdown": [],
    }


def test_session_without_topic_is_counted_under_unknown_module(now):
    known = _topic(module_no=2, module_name="Loops")
    sessions = [
        _session(uuid.uuid4(), None, ["Anything?"], now),
        _session(uuid.uuid4(), known, ["Loop question"], now),
        _session(uuid.uuid4(), known, [], now),
    ]

    rows = fold_module_activity_overview(sessions, {})
    by_module = {(r.module_no, r.module_name): r for r in rows}

    assert by_module[(999, "Unknown Module")].total_sessions == 1
    assert by_module[(999, "Unknown Module")].total_questions == 1
    assert by_module[(999, "Unknown Module")].custom_question_percentage == 100
    assert rows[0].module_name == "Loops"
    assert rows[0].total_sessions == 2


def test_most_active_module_tie_break_is_lexical():
    assert most_active_module({"Loops": 2, "Basics": 2, "Arrays": 1}) == "Basics"
    assert most_active_module({"Loops": 3, "Basics": 2}) == "Loops"
    assert most_active_module({}) is None


def test_per_learner_stats_sorted_by_last_activity(now):
    topic = _topic()
    quiet = uuid.uuid4()
    early = uuid.uuid4()
    late = uuid.uuid4()
    sessions = [
        _session(quiet, topic, [], now + timedelta(days=5)),
        _session(early, topic, ["Can you give me an example?", "Why?"], now),
        _session(late, topic, ["Why is the sky blue?"], now + timedelta(days=1)),
    ]

    rows = fold_per_learner_stats(sessions, {topic.topic_id: PROMPTS})

    assert [r.user_id for r in rows] == [late, early, quiet]
    early_row = rows[1]
    assert early_row.total_questions == 2
    assert early_row.predefined_count == 1
    assert early_row.custom_count == 1
    assert early_row.predefined_percentage == 50
    assert early_row.custom_percentage == 50
    assert early_row.most_active_module == "Basics"
    assert rows[2].last_activity_at is None
    assert rows[2].predefined_percentage == 0


def test_service_scoping_and_serialization(db, course_factory, now):
    basics = course_factory.topic(1, "Basics", "Variables", PROMPTS)
    loops = course_factory.topic(2, "Loops", "For loops", ["How does a for loop work?"])

    ada = course_factory.learner("Ada")
    bob = course_factory.learner("Bob")
    outsider = course_factory.learner("Eve", enrolled=False)
    cohort = course_factory.cohort("Spring", [bob])

    course_factory.chat(ada, basics, PREDEFINED[:3] + CUSTOM[:2], start=now)
    course_factory.chat(ada, loops, ["how does a for loop work"], start=now + timedelta(hours=1))
    course_factory.chat(bob, loops, ["Why do loops exist?"], start=now + timedelta(hours=2))
    course_factory.chat(bob, None, ["Where is the syllabus?"], start=now + timedelta(hours=3))
    course_factory.chat(outsider, basics, ["Hello?"], start=now)

    course_id = course_factory.course.id
    service = ChatbotStatsService(db)

    assert set(service.target_learner_ids(course_id)) == {ada.id, bob.id}
    assert service.target_learner_ids(course_id, cohort.id) == [bob.id]
    assert service.target_learner_ids(course_id, cohort.id, outsider.id) == [outsider.id]

    modules = service.session_stats(course_id)
    assert [m.module_no for m in modules] == [1, 2, 999]
    loops_topic = modules[1].topics[0]
    assert loops_topic.session_count == 2
    # Assistant replies are not questions.
    assert loops_topic.message_count == 2
    assert loops_topic.last_message_at is not None

    analysis = service.question_type_analysis(course_id)
    assert analysis.total_questions == 8
    assert analysis.predefined_questions == 4
    assert analysis.custom_questions == 4
    assert analysis.predefined_percentage == 50

    only_loops = service.question_type_analysis(course_id, topic_id=loops.id)
    assert only_loops.total_questions == 2
    assert [b.topic_name for b in only_loops.breakdown] == ["For loops"]

    cohort_analysis = service.question_type_analysis(course_id, cohort.id)
    assert cohort_analysis.total_questions == 2
    assert cohort_analysis.custom_percentage == 100

    learners = service.per_learner_stats(course_id)
    assert [r.user_id for r in learners] == [bob.id, ada.id]
    ada_row = learners[1]
    assert ada_row.user_name == "Ada"
    assert ada_row.total_sessions == 2
    assert ada_row.predefined_count == 4
    assert ada_row.custom_count == 2
    assert ada_row.predefined_percentage == 67
    assert ada_row.custom_percentage == 33
    assert ada_row.most_active_module == "Basics"

    custom = service.learner_custom_questions(course_id, ada.id)
    assert [q.question_text for q in custom] == [CUSTOM[1], CUSTOM[0]]
    assert custom[0].module_name == "Basics"
    assert service.learner_custom_questions(course_id, ada.id, cohort.id) == []
    bob_custom = service.learner_custom_questions(course_id, bob.id, cohort.id)
    assert {q.topic_name for q in bob_custom} == {"For loops", "Unknown Topic"}

    overview = service.module_activity_overview(course_id)
    by_no = {r.module_no: r for r in overview}
    assert by_no[999].module_name == "Unknown Module"
    assert by_no[2].total_sessions == 2
    assert by_no[2].custom_question_count == 1
    assert by_no[2].custom_question_percentage == 50

    payload = learners[0].model_dump(mode="json", by_alias=True)
    assert {"userId", "userName", "userEmail", "customPercentage", "mostActiveModule", "lastActivityAt"} <= set(payload)
    assert "customQuestionPercentage" in overview[0].model_dump(by_alias=True)


def test_service_returns_empty_results_without_learners(db, course_factory):
    service = ChatbotStatsService(db)
    course_id = course_factory.course.id
    assert service.session_stats(course_id) == []
    assert service.per_learner_stats(course_id) == []
    assert service.module_activity_overview(course_id) == []
    assert service.question_type_analysis(course_id).total_questions == 0
    assert service.question_type_analysis(course_id, topic_id="not-a-uuid").total_questions == 0
    assert service.learner_custom_questions(course_id, "not-a-uuid") == []
