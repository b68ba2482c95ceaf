from __future__ import annotations  # Shared LangChain helpers for the evaluator agent

from typing import List, Sequence, Tuple

from ..models import TranscriptEntry


def transcript_messages(history: Sequence[TranscriptEntry]) -> List[Tuple[str, str]]:  # Map transcript entries to LangChain (role, content) tuples
    messages: List[Tuple[str, str]] = []
    for entry in history:
        content = entry.text.strip()
        if not content:
            continue
        messages.append((_resolve_role(entry.role), content))
    return messages


def transcript_text(history: Sequence[TranscriptEntry]) -> str:  # Render a transcript as labelled lines
    lines = [f"{entry.role.capitalize()}: {' '.join(entry.text.split()) or '(no answer)'}" for entry in history]
    return "\n".join(lines) if lines else "(empty transcript)"


def clamp_text(text: str, limit: int = 600) -> str:  # Compact whitespace and clip length
    compact = " ".join(text.split())
    if len(compact) <= limit:
        return compact
    return compact[: limit - 1].rstrip() + "…"


def _resolve_role(role: str) -> str:
    if role == "interviewer":
        return "ai"
    return "human"


__all__ = ["clamp_text", "transcript_messages", "transcript_text"]
