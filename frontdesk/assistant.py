"""LLM assistant collaborator for the structured-extraction policy.

The assistant receives the system prompt, the running conversation and the
caller's latest utterance, and must answer with a JSON object::

    {"reply": "...", "collected": {"name": "...", "service": "...", ...}, "notes": "..."}

Anything else (non-JSON text, a JSON array, a missing or blank ``reply``)
is an AssistantError.  It is never spoken to the caller as-is.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

import aiohttp

log = logging.getLogger("frontdesk.assistant")

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?({.*?})\s*\n?```", re.DOTALL)


class AssistantError(Exception):
    """The assistant could not produce a usable structured reply."""


class AssistantNotConfigured(AssistantError):
    pass


@dataclass
class AssistantReply:
    reply: str
    collected: dict[str, Any] = field(default_factory=dict)
    notes: str = ""


def parse_assistant_payload(raw: str) -> AssistantReply:
    """Parse the model's message content into an AssistantReply.

    A single fenced ```json block is unwrapped; otherwise the whole
    content must be one JSON object.
    """
    if not raw or not raw.strip():
        raise AssistantError("Assistant returned an empty message")

    text = raw.strip()
    match = _FENCED_JSON.search(text)
    if match:
        text = match.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AssistantError(f"Assistant returned non-JSON content: {raw[:120]!r}") from e

    if not isinstance(data, dict):
        raise AssistantError("Assistant JSON is not an object")

    reply = data.get("reply")
    if not isinstance(reply, str) or not reply.strip():
        raise AssistantError("Assistant JSON has no reply text")

    collected = data.get("collected") or {}
    if not isinstance(collected, dict):
        raise AssistantError("Assistant 'collected' is not an object")

    notes = data.get("notes") or ""
    return AssistantReply(reply=reply.strip(), collected=collected, notes=str(notes))


class AssistantClient(ABC):
    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        history: Sequence[dict[str, str]],
        utterance: str,
    ) -> AssistantReply:
        """One structured completion.  Raises AssistantError on any failure."""


class OpenRouterAssistant(AssistantClient):
    """Chat-completions client for OpenRouter, asking for a JSON object response."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1-nano",
        url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout_seconds: float = 15.0,
        temperature: float = 0.3,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._temperature = temperature

    def build_messages(
        self,
        system_prompt: str,
        history: Sequence[dict[str, str]],
        utterance: str,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        if utterance:
            messages.append({"role": "user", "content": utterance})
        return messages

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[dict[str, str]],
        utterance: str,
    ) -> AssistantReply:
        if not self._api_key:
            raise AssistantNotConfigured("OPENROUTER_API_KEY is not set")

        body = {
            "model": self._model,
            "temperature": self._temperature,
            "top_p": 0.9,
            "messages": self.build_messages(system_prompt, history, utterance),
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._url, json=body, headers=headers) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise AssistantError(f"OpenRouter returned {resp.status}: {text[:200]}")
                    data = await resp.json()
        except asyncio.TimeoutError as e:
            raise AssistantError("OpenRouter request timed out") from e
        except aiohttp.ClientError as e:
            raise AssistantError(f"OpenRouter request failed: {e}") from e
        except ValueError as e:
            raise AssistantError("OpenRouter response body is not JSON") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AssistantError("OpenRouter response has no message content") from e

        return parse_assistant_payload(content or "")
