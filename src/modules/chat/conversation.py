"""Repair of client-supplied conversation history.

Completion backends reject turn sequences that do not start with a user
turn or that repeat a role. Clients send whatever they have: duplicated
entries, stray roles, empty messages, histories ending on either side.
``assemble_conversation`` turns any such input into a legal sequence
that ends with the current query, dropping or merging turns rather than
failing.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from src.modules.chat.schemas import ConversationTurn

logger = structlog.get_logger()

DEFAULT_WINDOW = 20
_VALID_ROLES = ("user", "assistant")


def _coerce_turn(raw: Any) -> ConversationTurn | None:
    """Read a role/content pair from a mapping or turn-like object.

    Returns None for anything that is not exactly a user or assistant
    turn with non-blank text content.
    """
    if isinstance(raw, ConversationTurn):
        role, content = raw.role, raw.content
    elif isinstance(raw, Mapping):
        role, content = raw.get("role"), raw.get("content")
    else:
        role, content = getattr(raw, "role", None), getattr(raw, "content", None)

    if role not in _VALID_ROLES:
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    return ConversationTurn(role=role, content=content)


def assemble_conversation(
    current_query: str,
    history: Iterable[Any] | None,
    *,
    window: int = DEFAULT_WINDOW,
) -> list[ConversationTurn]:
    """Build a strictly alternating turn sequence ending with the query.

    Steps:
    1. Keep only the most recent ``window`` entries of ``history``.
    2. Drop entries whose role is not user/assistant or whose content is empty.
    3. Discard everything before the first user turn.
    4. Enforce alternation; a turn repeating the previous role replaces it.
    5. Append the query as a new user turn, or merge it into a trailing
       user turn with a paragraph break.
    6. Fall back to the query alone if the result is somehow invalid.

    The caller's ``history`` is never modified.

    Args:
        current_query: The query being answered.
        history: Client-supplied turns in chronological order.
        window: Maximum number of history entries considered.

    Returns:
        A non-empty list starting with a user turn, alternating roles and
        ending with a user turn that ends with ``current_query``.
    """
    entries = list(history or [])
    recent = entries[-window:] if window > 0 else []

    filtered = [turn for raw in recent if (turn := _coerce_turn(raw)) is not None]

    first_user = next(
        (i for i, turn in enumerate(filtered) if turn.role == "user"),
        len(filtered),
    )

    accepted: list[ConversationTurn] = []
    for turn in filtered[first_user:]:
        if accepted and accepted[-1].role == turn.role:
            accepted[-1] = turn
        else:
            accepted.append(turn)

    kept_turns = len(accepted)
    if accepted and accepted[-1].role == "user":
        merged = f"{accepted[-1].content}\n\n{current_query}"
        accepted[-1] = ConversationTurn(role="user", content=merged)
    else:
        accepted.append(ConversationTurn(role="user", content=current_query))

    if not accepted or accepted[0].role != "user":
        logger.warning("conversation_rebuilt_from_query", history_length=len(entries))
        return [ConversationTurn(role="user", content=current_query)]

    if kept_turns != len(entries):
        logger.debug(
            "conversation_repaired",
            history_length=len(entries),
            window=window,
            kept_turns=kept_turns,
        )

    return accepted
