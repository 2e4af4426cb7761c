"""Prompts for TravelBuddy.

The answer prompt grounds the assistant in the travel package catalog;
the suggestion prompt asks for short follow-up questions limited to
topics that catalog actually covers.
"""

from src.modules.chat.schemas import ConversationTurn

ANSWER_SYSTEM_PROMPT = """You are TravelBuddy, a friendly travel assistant for holiday packages to Asia.
You answer questions ONLY using the travel package catalog below.

STRICT RULES - YOU MUST FOLLOW THESE:
1. ONLY use information from the "Travel package catalog" section below
2. NEVER invent packages, prices, dates or destinations that are not in the catalog
3. NEVER cite external websites or sources
4. If the catalog doesn't contain the answer, say so and suggest what the catalog does offer

RESPONSE GUIDELINES:
- Be friendly, concise, and accurate
- Quote prices, durations and departure cities exactly as written in the catalog
- Use short lists when comparing several packages
- If the question is unclear, ask for clarification

Travel package catalog:
{catalog}"""

NO_CATALOG_SYSTEM_PROMPT = """You are TravelBuddy, a friendly travel assistant for holiday packages to Asia.

IMPORTANT: The travel package catalog is currently unavailable.

STRICT RULES:
1. Tell the user that package details cannot be looked up right now
2. NEVER invent packages, prices or availability
3. Invite them to try again in a few minutes

Be friendly and brief."""

SUGGESTION_SYSTEM_PROMPT = """You suggest follow-up questions for a travel package assistant.
Only suggest questions that can be answered from the catalog below. Never mention
destinations, prices or services that are not in the catalog.

Travel package catalog:
{catalog}"""

SUGGESTION_INSTRUCTIONS = """Propose 3 to 5 short follow-up questions (under 12 words each) a traveller
might ask next. Respond with ONLY a JSON array of strings, for example:
["Which packages include flights?", "What is the cheapest Bali trip?"]"""

# Turns of recent conversation shown to the suggestion model
SUGGESTION_CONTEXT_TURNS = 4


def build_answer_prompt(catalog: str) -> str:
    """Build the answer system prompt around the catalog text."""
    if not catalog.strip():
        return NO_CATALOG_SYSTEM_PROMPT
    return ANSWER_SYSTEM_PROMPT.format(catalog=catalog.strip())


def build_suggestion_prompt(
    catalog: str, history: list[ConversationTurn]
) -> tuple[str, str]:
    """Build the system prompt and user message for suggestion generation.

    Args:
        catalog: Reference document text; may be empty.
        history: Conversation so far, oldest first; may be empty.

    Returns:
        (system_prompt, user_message) tuple.
    """
    system_prompt = SUGGESTION_SYSTEM_PROMPT.format(
        catalog=catalog.strip() or "[Catalog unavailable - keep suggestions general]"
    )

    if not history:
        user_message = (
            "A traveller has just opened the chat.\n\n" + SUGGESTION_INSTRUCTIONS
        )
        return system_prompt, user_message

    transcript = "\n".join(
        f"{turn.role.capitalize()}: {turn.content}"
        for turn in history[-SUGGESTION_CONTEXT_TURNS:]
    )
    user_message = f"Conversation so far:\n{transcript}\n\n{SUGGESTION_INSTRUCTIONS}"
    return system_prompt, user_message
