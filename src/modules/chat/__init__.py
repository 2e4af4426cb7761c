"""Chat module.

This module provides the core of TravelBuddy:
- Query normalization and cache key derivation
- Answer and suggestion caching with TTLs
- Repair of client-supplied conversation history
- Follow-up suggestions with retry and a latency ceiling
- The chat service tying them together
"""

from src.modules.chat.conversation import assemble_conversation
from src.modules.chat.normalizer import derive_key, is_generic_follow_up, normalize
from src.modules.chat.reference import ReferenceContentAccessor, ReferenceDocument
from src.modules.chat.response_cache import ResponseCache, answer_key
from src.modules.chat.schemas import ChatResult, ConversationTurn, TokenUsage
from src.modules.chat.service import ChatService
from src.modules.chat.suggestions import (
    SuggestionEngine,
    default_suggestions,
    parse_suggestions,
    suggestion_key,
)

__all__ = [
    "ChatResult",
    "ChatService",
    "ConversationTurn",
    "ReferenceContentAccessor",
    "ReferenceDocument",
    "ResponseCache",
    "SuggestionEngine",
    "TokenUsage",
    "answer_key",
    "assemble_conversation",
    "default_suggestions",
    "derive_key",
    "is_generic_follow_up",
    "normalize",
    "parse_suggestions",
    "suggestion_key",
]
