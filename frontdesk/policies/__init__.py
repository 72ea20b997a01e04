"""Conversation policies: one reply per caller utterance."""

from .base import ConversationPolicy, TurnResult
from .keyword_router import KeywordRouterPolicy, detect_intent
from .llm_extraction import AssistantPolicy

__all__ = [
    "AssistantPolicy",
    "ConversationPolicy",
    "KeywordRouterPolicy",
    "TurnResult",
    "detect_intent",
]
