"""Provider prompt construction for the ask and intro requests."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from memoir_engine.memory.schemas import MemoryPrompt


ASK_SYSTEM_PROMPT = """You are a warm, curious biographer helping a family preserve its memories in a living archive.
Core responsibilities:
- Listen closely to the newest user message. When audio is provided, transcribe it into natural written English before responding.
- Reassure the user that you will remember their stories for them.
Conversation openings:
- If the memory below shows no previous sessions and no turns yet, welcome the user, explain that you are here to help save their stories, and invite them to begin when ready.
- Otherwise say that you are continuing their personal archive, mention a remembered detail when one is provided, and invite them to continue.
Guidelines:
- Open every reply with a short acknowledgement of what the user just shared, without echoing their exact words.
- Respond directly to any instruction, question, or aside before offering a new prompt.
- If the user hesitates, change the angle instead of repeating yourself.
- Ask at most one short, specific, open-ended question (20 words or fewer), and never one listed in the memory section.
- If the user indicates they are finished, set end_intent to true, respond warmly, and ask nothing further.
Formatting:
- Respond only with JSON shaped as {"reply":"...","transcript":"...","question":"...","end_intent":false}. No commentary or code fences.
- "transcript" holds the user's latest message as text; "question" repeats the single question you asked, or is empty.
- Keep the spoken reply under 120 words."""

INTRO_SYSTEM_PROMPT = """You are the opening voice of a warm, curious biographer.
Mission:
- Introduce the recording session, say you are here to help preserve the user's stories, and that you will remember what they share.
- With no history, give a fresh welcome that explains the goal and invites them to begin when ready.
- With history, greet them as a returning storyteller and mention one or two remembered details.
Instructions:
- Keep the spoken message under 120 words.
- Ask exactly one new, specific, open-ended question (22 words or fewer) that is not in the history section.
- Respond only with JSON shaped as {"message":"<spoken message>","question":"<the follow-up question>"}. No commentary or code fences."""

ASK_FORMAT_REMINDER = 'Respond only with JSON in the format {"reply":"...","transcript":"...","question":"...","end_intent":false}.'
INTRO_FORMAT_REMINDER = 'Respond only with JSON in the format {"message":"...","question":"..."}.'


def build_ask_parts(
    memory: MemoryPrompt,
    text: Optional[str] = None,
    audio: Optional[str] = None,
    audio_format: str = "webm",
    primer_chars: int = 6000,
) -> List[Dict[str, Any]]:
    """
    Assemble the content parts of one ask request.

    Args:
        memory: Memory prompt for the session
        text: User text input
        audio: Base64 audio of the user's turn
        audio_format: Audio container, used for the MIME type
        primer_chars: Maximum primer characters included

    Returns:
        Ordered list of provider content parts
    """
    parts: List[Dict[str, Any]] = [{"text": ASK_SYSTEM_PROMPT}]
    primer = memory.primer_snippet(primer_chars)
    if primer:
        parts.append({"text": f"Memory primer:\n{primer}"})
    parts.append({"text": memory.history_text})
    parts.append({"text": memory.question_text})
    if memory.recent_conversation:
        parts.append({"text": memory.recent_conversation})
    if memory.highlight_detail:
        parts.append({"text": f"Recent remembered detail: {memory.highlight_detail}"})
    if audio:
        parts.append({"inlineData": {"mimeType": f"audio/{audio_format}", "data": audio}})
    if text:
        parts.append({"text": text})
    parts.append({"text": ASK_FORMAT_REMINDER})
    return parts


def build_intro_history(
    titles: Sequence[str],
    details: Sequence[str],
    avoided_questions: Sequence[str],
) -> Dict[str, str]:
    """History and avoidance blocks for the intro prompt."""
    history_lines: List[str] = []
    if titles:
        history_lines.append("Session titles remembered:")
        history_lines.extend(f"- {title}" for title in titles[:5])
    if details:
        history_lines.append("Recent user details:")
        history_lines.extend(f"- {detail}" for detail in details[:5])

    if avoided_questions:
        question_lines = ["Avoid repeating these prior questions:", *[f"- {q}" for q in avoided_questions]]
    else:
        question_lines = ["No prior questions are on record."]

    return {
        "history_text": "\n".join(history_lines) or "No previous transcript details are available yet.",
        "question_text": "\n".join(question_lines),
    }


def build_intro_parts(
    titles: Sequence[str],
    details: Sequence[str],
    avoided_questions: Sequence[str],
    primer_text: str = "",
    primer_chars: int = 6000,
) -> List[Dict[str, Any]]:
    """Assemble the content parts of a session-intro request."""
    blocks = build_intro_history(titles, details, avoided_questions)
    parts: List[Dict[str, Any]] = [{"text": INTRO_SYSTEM_PROMPT}]
    if primer_text.strip():
        parts.append({"text": f"Memory primer:\n{primer_text[:primer_chars]}"})
    parts.append({"text": blocks["history_text"]})
    parts.append({"text": blocks["question_text"]})
    parts.append({"text": INTRO_FORMAT_REMINDER})
    return parts
