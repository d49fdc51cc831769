"""
System prompts for Chat Relay.
Centralizes prompt text for chat turns, titles and suggestions.
"""

from __future__ import annotations

from datetime import UTC, datetime

REGULAR_PROMPT = "You are a friendly assistant! Keep your responses concise and helpful."

SEARCH_GUIDANCE = """When using web search capabilities:
1. Use the search tool for information beyond your training data: recent events, current statistics, facts that may have changed.
2. Perform at least 2-3 searches with different keywords for each request, and break complex questions into simpler queries.
3. Use keywords rather than full sentences.
4. Today's date is {today}. Include the current year ({year}) in queries about recent events or current data, but not for historical or evergreen topics.
5. Never guess domain names or use the "site:" operator unless the domain was verified by an earlier search or given by the user.
6. Cite the sources you relied on."""

TITLE_GENERATION_PROMPT = """- you will generate a short title based on the first message a user begins a conversation with
- ensure it is not more than 80 characters long
- the title should be a summary of the user's message
- do not use quotes or colons"""

SUGGESTION_PROMPT = (
    "You are a help writing assistant. Given a piece of writing, please offer suggestions to improve the "
    "piece of writing and describe the change. It is very important for the edits to contain full sentences "
    "instead of just words. Max {max_suggestions} suggestions. Respond with a JSON object of the form "
    '{{"suggestions": [{{"originalSentence": "...", "suggestedSentence": "...", "description": "..."}}]}}.'
)


def build_system_prompt(search_enabled: bool = False, now: datetime | None = None) -> str:
    """System prompt for a chat turn; adds search guidance when the search tool is offered."""
    if not search_enabled:
        return REGULAR_PROMPT
    now = now or datetime.now(UTC)
    guidance = SEARCH_GUIDANCE.format(today=now.strftime("%Y-%m-%d"), year=now.year)
    return f"{REGULAR_PROMPT}\n\n{guidance}"
