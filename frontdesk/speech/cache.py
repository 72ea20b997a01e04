"""Short-lived store for synthesized audio.

The telephony provider fetches each reply by URL, so the audio bytes are
parked here under a random handle for a few minutes.  Entries older than
the TTL are unreachable even before the periodic sweep deletes them.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger("frontdesk.speech.cache")

AUDIO_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class StoredAudio:
    id: str
    data: bytes
    mime_type: str
    created_at: float


class AudioCache:
    def __init__(
        self,
        ttl_seconds: float = AUDIO_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, StoredAudio] = {}

    def put(self, data: bytes, mime_type: str = "audio/mpeg") -> StoredAudio:
        entry = StoredAudio(
            id=uuid.uuid4().hex,
            data=data,
            mime_type=mime_type,
            created_at=self._clock(),
        )
        self._entries[entry.id] = entry
        return entry

    def _expired(self, entry: StoredAudio, now: float) -> bool:
        return now - entry.created_at > self._ttl

    def get(self, audio_id: str) -> StoredAudio | None:
        """The entry, or None if unknown or past its TTL."""
        entry = self._entries.get(audio_id)
        if entry is None or self._expired(entry, self._clock()):
            return None
        return entry

    def sweep(self) -> int:
        """Delete expired entries; return how many were removed."""
        now = self._clock()
        expired = [k for k, v in self._entries.items() if self._expired(v, now)]
        for audio_id in expired:
            self._entries.pop(audio_id, None)
        if expired:
            log.debug("Evicted %d expired audio entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
