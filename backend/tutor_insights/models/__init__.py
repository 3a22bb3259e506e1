from tutor_insights.models.user import User
from tutor_insights.models.course import Cohort, CohortMember, Course, Enrollment, Topic, TopicPromptSuggestion
from tutor_insights.models.activity import DerivedStatus, LearnerActivityEvent
from tutor_insights.models.chat import RagChatMessage, RagChatSession
from tutor_insights.models.prompt_usage import ModulePromptUsage

__all__ = [
    "User",
    "Course",
    "Topic",
    "TopicPromptSuggestion",
    "Enrollment",
    "Cohort",
    "CohortMember",
    "DerivedStatus",
    "LearnerActivityEvent",
    "RagChatSession",
    "RagChatMessage",
    "ModulePromptUsage",
]
