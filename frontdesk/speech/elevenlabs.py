"""ElevenLabs text-to-speech over the REST API.

One POST per reply; the streamed MP3 body is collected into a bounded
buffer so a misbehaving response cannot grow without limit.

API reference:
  https://elevenlabs.io/docs/api-reference/text-to-speech/convert
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from frontdesk.speech.base import (
    EmptySpeechInput,
    SpeechNotConfigured,
    SpeechProviderError,
    SpeechSynthesizer,
    SynthesizedAudio,
)

log = logging.getLogger("frontdesk.speech.elevenlabs")

API_BASE = "https://api.elevenlabs.io/v1/text-to-speech"
CHUNK_SIZE = 8192

MIME_TYPES = {"mp3": "audio/mpeg", "ulaw": "audio/basic", "pcm": "audio/L16"}


def mime_type_for(output_format: str) -> str:
    """'mp3_44100_128' → 'audio/mpeg'."""
    return MIME_TYPES.get(output_format.split("_", 1)[0], "application/octet-stream")


class ElevenLabsSynthesizer(SpeechSynthesizer):
    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str = "eleven_turbo_v2",
        output_format: str = "mp3_44100_128",
        stability: float = 0.6,
        similarity_boost: float = 0.8,
        timeout_seconds: float = 15.0,
        max_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self._api_key = api_key
        self._voice_id = voice_id
        self._model_id = model_id
        self._output_format = output_format
        self._stability = stability
        self._similarity_boost = similarity_boost
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._max_bytes = max_bytes

    def _request_body(self, text: str) -> dict:
        return {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": {
                "stability": self._stability,
                "similarity_boost": self._similarity_boost,
            },
        }

    async def synthesize(self, text: str) -> SynthesizedAudio:
        if not text or not text.strip():
            raise EmptySpeechInput("Cannot synthesize empty text")
        if not self._api_key:
            raise SpeechNotConfigured("ELEVENLABS_API_KEY is not configured")
        if not self._voice_id:
            raise SpeechNotConfigured("ELEVENLABS_VOICE_ID is not configured")

        url = f"{API_BASE}/{self._voice_id}"
        headers = {"xi-api-key": self._api_key, "accept": "audio/mpeg"}
        params = {"output_format": self._output_format}
        buffer = bytearray()

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    url, json=self._request_body(text), headers=headers, params=params,
                ) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise SpeechProviderError(
                            f"ElevenLabs returned {resp.status}: {body[:200]}"
                        )
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        buffer.extend(chunk)
                        if len(buffer) > self._max_bytes:
                            raise SpeechProviderError(
                                f"Synthesized audio exceeds {self._max_bytes} bytes"
                            )
        except asyncio.TimeoutError as e:
            raise SpeechProviderError("ElevenLabs request timed out") from e
        except aiohttp.ClientError as e:
            raise SpeechProviderError(f"ElevenLabs request failed: {e}") from e

        if not buffer:
            raise SpeechProviderError("ElevenLabs returned no audio")

        log.info("Synthesized %d bytes for %d chars", len(buffer), len(text))
        return SynthesizedAudio(data=bytes(buffer), mime_type=mime_type_for(self._output_format))
