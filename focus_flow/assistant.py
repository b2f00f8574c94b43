"""Gemini-backed text collaborators: motivational prompts and the focus chat."""

from __future__ import annotations

from typing import Sequence

from google import genai

from .config import GEMINI_API_KEY, GEMINI_MODEL
from .errors import FetchError
from .models import ChatMessage, Speaker

MOTIVATION_TEMPLATE = (
    "You are a motivational coach. Generate a short motivational prompt to encourage "
    "the user to stay focused during their focus session.\n\n"
    "Session Duration: {duration} minutes\n"
    "Time Elapsed: {elapsed} minutes"
)

CHAT_PREAMBLE = (
    "You are a helpful and concise assistant. The user is currently in a FocusFlow session "
    "and might ask you questions or for quick help. Keep your responses brief and to the point."
)


def build_motivation_prompt(duration_minutes: int, elapsed_minutes: int) -> str:
    return MOTIVATION_TEMPLATE.format(duration=duration_minutes, elapsed=elapsed_minutes)


def build_chat_prompt(message: str, history: Sequence[ChatMessage]) -> str:
    lines = [CHAT_PREAMBLE, "", "Conversation History:"]
    if not history:
        lines.append("No previous messages.")
    for msg in history:
        who = "User" if msg.speaker is Speaker.USER else "Assistant"
        lines.append(f"{who}: {msg.text}")
    lines += ["", f"User: {message}", "Assistant:"]
    return "\n".join(lines)


class GeminiClient:
    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL, client=None):
        self._api_key = api_key
        self._model = model
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise FetchError("Gemini API key not found. Set GEMINI_API_KEY.")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def generate(self, contents: str) -> str:
        client = self._get_client()
        try:
            response = client.models.generate_content(model=self._model, contents=contents)
        except Exception as exc:
            raise FetchError(f"Gemini request failed: {exc}") from exc

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise FetchError("Gemini returned an empty response")
        return text


class GeminiPromptSource:
    def __init__(self, client: GeminiClient):
        self._client = client

    def generate_prompt(self, duration_minutes: int, elapsed_minutes: int) -> str:
        return self._client.generate(build_motivation_prompt(duration_minutes, elapsed_minutes))


class GeminiChatSource:
    def __init__(self, client: GeminiClient):
        self._client = client

    def reply(self, message: str, history: Sequence[ChatMessage]) -> str:
        return self._client.generate(build_chat_prompt(message, history))
