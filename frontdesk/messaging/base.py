"""ConfirmationSender ABC: one async send per booked appointment."""

from abc import ABC, abstractmethod


class ConfirmationSender(ABC):
    """Delivers a confirmation text to a caller address.

    Implementations return False (and log) on delivery failure rather
    than raising; the call has usually ended by the time this runs.
    """

    @abstractmethod
    async def send(self, message: str, destination: str) -> bool:
        """Send ``message`` to ``destination``; True on success."""
