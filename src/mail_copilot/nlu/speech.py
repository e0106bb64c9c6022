from __future__ import annotations

import logging
from typing import Optional, Sequence

from openai import OpenAI, OpenAIError

from mail_copilot.errors import TranscriptionError

logger = logging.getLogger(__name__)

# Transcription prompts are capped at a few hundred tokens.
PROMPT_CHAR_LIMIT = 800


def vocabulary_prompt(phrases: Sequence[str], limit: int = PROMPT_CHAR_LIMIT) -> Optional[str]:
    picked = []
    used = 0
    for phrase in phrases:
        extra = len(phrase) + 2
        if used + extra > limit:
            break
        picked.append(phrase)
        used += extra
    return ", ".join(picked) or None


class SpeechTranscriber:
    """Transcribes a recorded command, biased towards the user's contact names."""

    def __init__(self, client: OpenAI, *, model: str = "whisper-1", language: str = "en"):
        self._client = client
        self._model = model
        self._language = language

    def transcribe(self, audio: bytes, *, filename: str = "command.mp3", phrases: Sequence[str] = ()) -> str:
        if not audio:
            raise TranscriptionError("No audio provided.")

        params = {"model": self._model, "file": (filename, audio), "language": self._language}
        prompt = vocabulary_prompt(phrases)
        if prompt:
            params["prompt"] = prompt

        try:
            resp = self._client.audio.transcriptions.create(**params)
        except OpenAIError as exc:
            raise TranscriptionError(f"Could not transcribe audio: {exc}") from exc

        transcript = (getattr(resp, "text", "") or "").strip()
        if not transcript:
            raise TranscriptionError()
        logger.info("Transcription result: %s", transcript)
        return transcript
