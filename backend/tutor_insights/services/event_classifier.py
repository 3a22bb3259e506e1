from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import ValidationError

from tutor_insights.models.activity import DerivedStatus
from tutor_insights.schemas.activity import EventPayload


class EventClassification(NamedTuple):
    derived_status: DerivedStatus | None = None
    status_reason: str | None = None


class _PrefixRule(NamedTuple):
    prefixes: tuple[str, ...]
    status: DerivedStatus
    fallback: str


# Checked in order, first match wins.
EVENT_PREFIX_RULES: tuple[_PrefixRule, ...] = (
    _PrefixRule(
        prefixes=("idle.", "video.pause", "video.buffer.start", "lesson.locked_click"),
        status=DerivedStatus.attention_drift,
        fallback="Idle or pause pattern detected",
    ),
    _PrefixRule(
        prefixes=(
            "quiz.fail",
            "quiz.retry",
            "tutor.prompt",
            "cold_call.star",
            "cold_call.submit",
            "tutor.response_received",
            "content.friction",
        ),
        status=DerivedStatus.content_friction,
        fallback="Learner signaled friction",
    ),
    _PrefixRule(
        prefixes=(
            "video.play",
            "video.resume",
            "video.buffer.end",
            "progress.snapshot",
            "persona.",
            "notes.",
            "lesson.",
            "cold_call.",
            "tutor.response",
        ),
        status=DerivedStatus.engaged,
        fallback="Learner interacting with content",
    ),
)


def payload_reason(payload: Any) -> str | None:
    """Return the explicit, non-blank ``reason`` carried by a payload, if any."""
    if not isinstance(payload, dict):
        return None
    try:
        parsed = EventPayload.model_validate(payload)
    except ValidationError:
        return None
    reason = parsed.reason
    if reason is None or not reason.strip():
        return None
    return reason


def _build_reason(event_type: str, payload: Any, fallback: str) -> str:
    return payload_reason(payload) or f"{fallback} ({event_type})"


def match_rule(event_type: str) -> _PrefixRule | None:
    normalized = (event_type or "").lower()
    for rule in EVENT_PREFIX_RULES:
        if any(normalized.startswith(prefix) for prefix in rule.prefixes):
            return rule
    return None


def classify_event(event_type: str, payload: Any = None) -> EventClassification:
    """Tag a raw telemetry event with a coarse live-alerting status.

    Unknown event types produce an empty classification.
    """
    rule = match_rule(event_type)
    if rule is None:
        return EventClassification()
    return EventClassification(
        derived_status=rule.status,
        status_reason=_build_reason(event_type, payload, rule.fallback),
    )
