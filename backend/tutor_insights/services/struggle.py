from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from tutor_insights.core.values import as_utc, utcnow
from tutor_insights.schemas.activity import StruggleAnalysis


class StruggleType(str, enum.Enum):
    no_interest = "No Interest"
    no_time = "No Time"
    not_engaging = "Not Engaging"
    no_understanding = "No Understanding"
    none = "None"


class Severity(str, enum.Enum):
    low = "Low"
    medium = "Medium"
    high = "High"


class TimedEvent(Protocol):
    event_type: str
    created_at: datetime


@dataclass(frozen=True)
class StruggleWeights:
    """Heuristic scoring constants. Defaults are the production values."""

    quiz_failure: float = 25
    quiz_retry: float = 10
    tutor_prompt: float = 5
    video_pause: float = 15
    unfinished_video: float = 30
    idle_ratio: float = 80
    failed_without_retry: float = 20
    session_start: float = 20

    understanding_decay_rate: float = 0.01
    default_decay_rate: float = 0.05

    confidence_floor: float = 15
    high_severity_above: float = 70
    medium_severity_above: float = 30


DEFAULT_WEIGHTS = StruggleWeights()

MAX_SCORE = 100.0

EXPLANATIONS: dict[StruggleType, str] = {
    StruggleType.no_understanding: (
        "Learner is actively trying but failing assessments or seeking excessive help, "
        "indicating cognitive friction."
    ),
    StruggleType.not_engaging: (
        "Learner shows signs of boredom or system frustration through frequent pauses "
        "and incomplete videos."
    ),
    StruggleType.no_interest: (
        "Low engagement and high idle time suggest a lack of motivation or disconnection "
        "from the module."
    ),
    StruggleType.no_time: "Fragmented session patterns suggest external constraints are preventing focused study.",
    StruggleType.none: "No significant struggle patterns detected.",
}

NO_ACTIVITY_EXPLANATION = "No activity recorded yet."

CONTENT_FRICTION_TYPES = frozenset({StruggleType.no_understanding, StruggleType.not_engaging})


@dataclass(frozen=True)
class _Signals:
    total: int
    quiz_failures: int
    quiz_retries: int
    idle_events: int
    video_plays: int
    video_ends: int
    video_pauses: int
    tutor_prompts: int
    session_starts: int

    @property
    def idle_ratio(self) -> float:
        return self.idle_events / max(1, self.total)

    @property
    def unfinished_videos(self) -> bool:
        return self.video_plays > 0 and self.video_ends == 0


def _count_signals(events: Sequence[TimedEvent]) -> _Signals:
    types = [e.event_type for e in events]
    return _Signals(
        total=len(types),
        quiz_failures=types.count("quiz.fail"),
        quiz_retries=types.count("quiz.retry"),
        idle_events=sum(1 for t in types if t.startswith("idle.")),
        video_plays=types.count("video.play"),
        video_ends=types.count("video.end"),
        video_pauses=types.count("video.pause"),
        tutor_prompts=types.count("tutor.prompt"),
        session_starts=types.count("session.start"),
    )


def _signal_messages(s: _Signals) -> list[str]:
    messages: list[str] = []
    if s.quiz_failures > 2:
        messages.append(f"Multiple quiz failures ({s.quiz_failures})")
    if s.quiz_retries > 3:
        messages.append(f"Frequent retries ({s.quiz_retries})")
    if s.idle_ratio > 0.4:
        messages.append("High idle ratio detected")
    if s.unfinished_videos:
        messages.append("Videos started but not finished")
    if s.video_pauses > 5:
        messages.append("Frequent video pausing")
    if s.tutor_prompts > 5:
        messages.append("High help-seeking intensity")
    if s.session_starts > 3:
        messages.append("Fragmented session pattern")
    return messages


def _raw_scores(s: _Signals, w: StruggleWeights) -> dict[StruggleType, float]:
    no_understanding = s.quiz_failures * w.quiz_failure + s.quiz_retries * w.quiz_retry + s.tutor_prompts * w.tutor_prompt

    not_engaging = s.video_pauses * w.video_pause
    if s.unfinished_videos:
        not_engaging += w.unfinished_video

    no_interest = s.idle_ratio * w.idle_ratio
    if s.quiz_failures > 0 and s.quiz_retries == 0:
        no_interest += w.failed_without_retry

    no_time = s.session_starts * w.session_start

    scores = {
        StruggleType.no_interest: no_interest,
        StruggleType.no_time: no_time,
        StruggleType.not_engaging: not_engaging,
        StruggleType.no_understanding: no_understanding,
    }
    return {k: min(MAX_SCORE, max(0.0, float(v))) for k, v in scores.items()}


def decay_factor(struggle: StruggleType, hours: float, weights: StruggleWeights = DEFAULT_WEIGHTS) -> float:
    if struggle == StruggleType.none:
        return 1.0
    rate = weights.understanding_decay_rate if struggle == StruggleType.no_understanding else weights.default_decay_rate
    return (1 - rate) ** max(0.0, hours)


def severity_for(score: float, weights: StruggleWeights = DEFAULT_WEIGHTS) -> Severity:
    if score > weights.high_severity_above:
        return Severity.high
    if score > weights.medium_severity_above:
        return Severity.medium
    return Severity.low


def _empty_scores() -> dict[str, float]:
    return {t.value: 0.0 for t in StruggleType}


def analyze_struggle(
    events: Sequence[TimedEvent],
    now: datetime | None = None,
    weights: StruggleWeights = DEFAULT_WEIGHTS,
) -> StruggleAnalysis:
    """Score a learner's recent telemetry into four struggle categories.

    Counts are taken over the whole window. Scores are clamped to [0, 100] and then
    decayed by the hours elapsed since the most recent event; cognitive friction
    (No Understanding) decays slower than the motivational categories. The dominant
    category falls back to ``None`` below the confidence floor.
    """
    if not events:
        return StruggleAnalysis(
            dominant_struggle=StruggleType.none.value,
            severity=Severity.low.value,
            scores=_empty_scores(),
            content_friction=False,
            explanation=NO_ACTIVITY_EXPLANATION,
            signals=[],
        )

    now = as_utc(now or utcnow())
    signals = _count_signals(events)
    raw = _raw_scores(signals, weights)

    latest = max(as_utc(e.created_at) for e in events)
    hours_since_last_activity = (now - latest).total_seconds() / 3600

    decayed = {k: v * decay_factor(k, hours_since_last_activity, weights) for k, v in raw.items()}

    dominant = StruggleType.none
    max_score = 0.0
    for struggle, score in decayed.items():
        if score > max_score:
            max_score = score
            dominant = struggle

    if max_score < weights.confidence_floor:
        dominant = StruggleType.none

    scores = _empty_scores()
    scores.update({k.value: v for k, v in decayed.items()})

    return StruggleAnalysis(
        dominant_struggle=dominant.value,
        severity=severity_for(max_score, weights).value,
        scores=scores,
        content_friction=dominant in CONTENT_FRICTION_TYPES,
        explanation=EXPLANATIONS[dominant],
        signals=_signal_messages(signals),
    )
