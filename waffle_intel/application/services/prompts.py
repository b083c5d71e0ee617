"""Prompt templates and completion-output parsing shared by the services."""

import json
from typing import Any

RECAP_SYSTEM = (
    "You summarize short personal video updates shared between friends. "
    "Write plainly, in the third person, without hashtags or emojis."
)

RECAP_PROMPT = """\
Summarize this video transcript in at most {max_words} words. Mention the \
main topics and any plans, news or feelings the speaker shares.

Transcript:
\"\"\"{transcript}\"\"\"

Summary:"""

CAPTION_SYSTEM = (
    "You write short, engaging captions for social video posts. "
    "Respond with valid JSON only."
)

CAPTION_PROMPT = """\
Based on the transcript below, write exactly {count} short, engaging captions \
for the video. Each caption must be {max_length} characters or less.

Match the voice of the user's own past captions:
{style_examples}

Captions of similar past videos, for inspiration only:
{neighbor_captions}

Transcript:
\"\"\"{transcript}\"\"\"

Return JSON: {{"captions": ["caption 1", "caption 2", "caption 3"]}}"""

STARTER_SYSTEM = (
    "You help friends in a small group keep their video conversation going. "
    "Respond with valid JSON only."
)

STARTER_PROMPT = """\
Here is what this user has shared recently:
{own_updates}

Here is what the rest of the group has shared recently:
{group_updates}

Write exactly {count} short, friendly prompts (under 100 characters each) the \
user could answer in their next video. Reference specific things from the \
updates when you can.

Return JSON: {{"prompts": ["prompt 1", "prompt 2"]}}"""

CATCHUP_SYSTEM = (
    "You catch people up on what their friends have been sharing. "
    "Be warm and conversational, and refer to people by name."
)

CATCHUP_PROMPT = """\
These are the videos posted to the group in the last {days} days, newest first:
{entries}

Write a 4 to 6 sentence summary of what everyone has been up to. Mention each \
person by name at least once. Do not use bullet points."""

ANSWER_SYSTEM = (
    "You answer questions about videos shared in the user's groups, using "
    "only the transcripts provided. If they do not contain the answer, say so."
)

ANSWER_PROMPT = """\
Question: {query}

Relevant videos:
{context}

Answer in 2 to 4 sentences and mention who said what."""

NO_RESULTS_ANSWER = (
    "I couldn't find any waffles that match your search. "
    "Try different words or a wider date range."
)

NO_ACTIVITY_SUMMARY = (
    "No activity in the last {days} days. "
    "Be the first to share what you've been up to!"
)

_NONE_LISTED = "(none)"


def bullet_list(items: list[str]) -> str:
    """Render items as ``- item`` lines, or a placeholder when empty."""
    lines = [f"- {item}" for item in items if item and item.strip()]
    return "\n".join(lines) if lines else _NONE_LISTED


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a completion that should be a single JSON object.

    Tolerates a surrounding markdown code fence and leading or trailing prose.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1])

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError("No valid JSON found in response") from None
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise ValueError("No valid JSON found in response") from e

    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def string_list(data: dict[str, Any], *keys: str) -> list[str]:
    """First list of non-empty strings found under any of ``keys``."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return []
