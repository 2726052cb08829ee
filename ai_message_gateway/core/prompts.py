"""Prompt builders for the generator."""

from typing import Sequence


def build_message_prompt(
    long_term_state: str, yesterday_mood: str, yesterday_notes: str
) -> str:
    """Prompt for an empathetic morning message from the user's mood context."""
    return f"""User emotional context:

Long-term emotional trend:
{long_term_state}

Yesterday's mood:
{yesterday_mood}

Yesterday's notable events or notes:
{yesterday_notes}

Task:
Write a short motivational message for today that:
- Acknowledges the user's emotional context with empathy
- Offers encouragement or calm reassurance
- Optionally includes a short inspirational quote if it fits naturally
- Feels personal, not generic
- Works as a morning message in a mobile app

Constraints:
- At most 5 sentences
- No advice, no instructions, no diagnosis
- Do not repeat raw labels such as "you are demotivated"
- At most one subtle emoji

Output only the final message text."""


def build_quote_prompt(mood: str, focus_tags: Sequence[str]) -> str:
    """Prompt for a single quote, answered as a constrained JSON object."""
    focus = ", ".join(focus_tags) if focus_tags else "general wellness"
    return f"""Suggest one short inspirational quote for someone who feels {mood} today.

They want to focus on: {focus}

Respond with a JSON object only, no markdown, using this shape:
{{"text": "<the quote>", "author": "<author or null>", "categories": ["<category>", ...]}}"""


def build_notification_prompt(focus_tags: Sequence[str]) -> str:
    """Prompt for a very short reminder used as a push notification body."""
    focus = ", ".join(focus_tags) if focus_tags else "general wellness"
    return f"""Write a gentle, encouraging notification (max 10 words) reminding someone to check in on their mood today.

Context:
- The user focuses on: {focus}

Examples:
- "How's your heart feeling today?"
- "Time to check in with yourself"
- "Your daily moment of reflection awaits"

Return only the message text, no quotes or extra formatting."""
