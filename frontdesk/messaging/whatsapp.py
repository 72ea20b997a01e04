"""Twilio WhatsApp confirmation sender.

The Twilio REST client is synchronous, so each send runs in the default
thread pool.  When ``demo_number`` is set every message is redirected to
it, which keeps test calls from texting real callers.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from frontdesk.messaging.base import ConfirmationSender
from frontdesk.normalize import normalize_phone
from frontdesk.session import redact_pii

log = logging.getLogger("frontdesk.messaging.whatsapp")

PREFIX = "whatsapp:"


def whatsapp_address(number: str, default_country_code: str = "1") -> str:
    """``whatsapp:+<digits>`` for a phone number in any common format."""
    number = (number or "").strip()
    if number.lower().startswith(PREFIX):
        return number
    normalized = normalize_phone(number, default_country_code)
    if not normalized:
        raise ValueError(f"Not a phone number: {number!r}")
    return PREFIX + normalized


class TwilioWhatsAppSender(ConfirmationSender):
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        demo_number: str = "",
        default_country_code: str = "1",
        client: Client | None = None,
    ) -> None:
        if not (account_sid and auth_token and from_number):
            raise ValueError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER "
                "are required to send confirmations."
            )
        self._client = client or Client(account_sid, auth_token)
        self._from = whatsapp_address(from_number, default_country_code)
        self._demo_number = demo_number
        self._country_code = default_country_code

    async def send(self, message: str, destination: str) -> bool:
        recipient = destination
        if self._demo_number:
            log.info(
                "Demo mode: redirecting confirmation from %s to %s",
                redact_pii(destination), redact_pii(self._demo_number),
            )
            recipient = self._demo_number

        try:
            to = whatsapp_address(recipient, self._country_code)
        except ValueError:
            log.warning("Confirmation skipped: bad recipient %s", redact_pii(recipient))
            return False

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                partial(self._client.messages.create, body=message, to=to, from_=self._from),
            )
        except TwilioException as e:
            log.error("Failed to send WhatsApp confirmation to %s: %s", redact_pii(to), e)
            return False

        log.info("Confirmation sent to %s (sid=%s)", redact_pii(to), getattr(result, "sid", "?"))
        return True
