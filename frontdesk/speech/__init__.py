"""Speech synthesis and the audio cache that serves it to the telephony provider."""

from .base import (
    EmptySpeechInput,
    SpeechError,
    SpeechNotConfigured,
    SpeechProviderError,
    SpeechSynthesizer,
    SynthesizedAudio,
)
from .cache import AudioCache, StoredAudio

__all__ = [
    "AudioCache",
    "EmptySpeechInput",
    "SpeechError",
    "SpeechNotConfigured",
    "SpeechProviderError",
    "SpeechSynthesizer",
    "StoredAudio",
    "SynthesizedAudio",
]
