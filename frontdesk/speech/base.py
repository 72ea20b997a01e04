"""SpeechSynthesizer ABC and its error taxonomy.

The call flow picks a different caller-facing line for each error class,
so implementations must raise the specific subclass:

  SpeechNotConfigured   missing API key / voice id
  EmptySpeechInput      nothing to say
  SpeechProviderError   timeout, HTTP error, oversized or empty audio
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class SpeechError(Exception):
    """Base class for synthesis failures."""


class SpeechNotConfigured(SpeechError):
    pass


class EmptySpeechInput(SpeechError):
    pass


class SpeechProviderError(SpeechError):
    pass


@dataclass
class SynthesizedAudio:
    data: bytes
    mime_type: str = "audio/mpeg"


class SpeechSynthesizer(ABC):
    @abstractmethod
    async def synthesize(self, text: str) -> SynthesizedAudio:
        """Render ``text`` to a complete audio blob.

        Suspends the current turn until all bytes are available or the
        provider timeout fires.
        """
