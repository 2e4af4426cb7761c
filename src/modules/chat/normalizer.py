"""Query normalization, cache key derivation and generic follow-up detection.

Paraphrases that differ only in case, punctuation or function words
("What packages exist in Thailand?" / "packages exist thailand") collapse
to the same normalized text and therefore the same cache key. This is a
lexical approximation of similarity; there is no embedding lookup.
"""

import hashlib
import re

# Anything that is not a letter, digit or whitespace (underscore counts as punctuation)
_NON_WORD_PATTERN = re.compile(r"[^\w\s]|_")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# fmt: off
STOP_WORDS: frozenset[str] = frozenset(
    {
        # Articles and determiners
        "a", "an", "the", "this", "that", "these", "those", "some", "any",
        # Prepositions and conjunctions
        "about", "at", "by", "for", "from", "in", "into", "of", "on", "to",
        "with", "and", "or",
        # Auxiliary and modal verbs
        "am", "are", "be", "been", "can", "could", "did", "do", "does",
        "had", "has", "have", "is", "may", "might", "shall", "should",
        "was", "were", "will", "would",
        # Question words
        "how", "what", "when", "where", "which", "who", "whom", "whose", "why",
        # Pronouns and fillers
        "i", "it", "there", "please",
    }
)
# fmt: on

# Context-dependent phrases; their answers only make sense in one conversation
_GENERIC_PHRASES = (
    "tell me more",
    "more",
    "more details",
    "more info",
    "more information",
    "what else",
    "anything else",
    "other options",
    "any other options",
    "what are the other options",
    "show me more",
    "go on",
    "continue",
    "and then",
    "what about that",
    "what about it",
    "explain",
    "explain more",
    "why",
    "yes",
    "no",
    "ok",
    "okay",
    "thanks",
    "thank you",
)


def normalize(text: str | None) -> str:
    """Canonicalize query text for cache key derivation.

    Lower-cases, replaces punctuation with spaces, collapses whitespace,
    drops stop words and re-joins the surviving tokens. Pure and
    idempotent; empty or missing input yields "".
    """
    if not text:
        return ""

    lowered = str(text).lower()
    spaced = _NON_WORD_PATTERN.sub(" ", lowered)
    collapsed = _WHITESPACE_PATTERN.sub(" ", spaced).strip()

    tokens = [token for token in collapsed.split(" ") if token and token not in STOP_WORDS]
    return " ".join(tokens)


def derive_key(text: str | None) -> str:
    """Return the SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize(text).encode("utf-8")).hexdigest()


GENERIC_FOLLOW_UPS: frozenset[str] = frozenset(
    normalized for normalized in (normalize(p) for p in _GENERIC_PHRASES) if normalized
)


def is_generic_follow_up(query: str | None) -> bool:
    """Whether ``query`` must bypass the shared response cache.

    True for known context-dependent phrases and for queries made up
    entirely of stop words, which would otherwise all share the key of
    the empty string.
    """
    normalized = normalize(query)
    return not normalized or normalized in GENERIC_FOLLOW_UPS
