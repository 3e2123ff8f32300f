"""
Twilio SMS and Voice Channels

This module provides an async HTTP client for the Twilio REST API and the two
channels built on it. It handles:
- Basic-auth form POSTs with retry logic
- Rate limit handling (429, 503 errors)
- Turning every failure into DeliveryError

API Documentation:
    https://www.twilio.com/docs/sms/api/message-resource
    https://www.twilio.com/docs/voice/api/call-resource

Usage:
    sms = SmsChannel(["+15550001111"], sender="+15559990000",
                     account_sid="AC...", auth_token="...")
    await sms.send("+15550001111", "LTC is listed on kraken")
    await sms.close()
"""

import asyncio
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import aiohttp

from core.logging import get_logger
from notifications.channel import DeliveryError, NotificationChannel

API_VERSION = "2010-04-01"


class TwilioAPIClient:
    """
    Async HTTP client for the Twilio REST API

    Attributes:
        base_url: Twilio API base URL
        account_sid: Account SID (also the basic-auth username)
        auth_token: Auth token (basic-auth password)
        timeout: Request timeout in seconds
        session: aiohttp ClientSession, created lazily on first request

    Notes:
        - One client per credential set, reused for every delivery
        - Retries rate limits up to 3 times with backoff 1.5s * attempt
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        base_url: str = "https://api.twilio.com",
        timeout: int = 15,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(__name__)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.account_sid, self.auth_token),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self.session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def _post(self, resource: str, data: Dict[str, str]) -> Dict[str, Any]:
        """
        POST a form to an account resource (e.g. "Messages.json").

        Returns:
            Parsed JSON response

        Raises:
            RuntimeError: On a non-retryable HTTP error or after all retries
        """
        session = await self._ensure_session()
        url = f"{self.base_url}/{API_VERSION}/Accounts/{self.account_sid}/{resource}"

        for attempt in range(3):
            try:
                async with session.post(url, data=data) as resp:
                    if resp.status in (200, 201):
                        return await resp.json()

                    if resp.status in (429, 503):
                        delay = 1.5 * (attempt + 1)
                        self.logger.warning(
                            f"Rate limited (HTTP {resp.status}) on {resource}. "
                            f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/3)"
                        )
                        await asyncio.sleep(delay)
                        continue

                    text = await resp.text()
                    raise RuntimeError(f"HTTP {resp.status}: {text}")

            except asyncio.TimeoutError:
                self.logger.warning(f"Timeout on {resource} (attempt {attempt + 1}/3)")
                await asyncio.sleep(1.0 * (attempt + 1))

            except aiohttp.ClientError as e:
                self.logger.warning(f"Request failed on {resource}: {e} (attempt {attempt + 1}/3)")
                await asyncio.sleep(1.0 * (attempt + 1))

        raise RuntimeError(f"Failed to POST {resource} after 3 attempts")

    # ============================================
    # API Methods
    # ============================================

    async def create_message(self, to: str, sender: str, body: str) -> Dict[str, Any]:
        """Send an SMS."""
        return await self._post("Messages.json", {"To": to, "From": sender, "Body": body})

    async def create_call(
        self,
        to: str,
        sender: str,
        url: Optional[str] = None,
        twiml: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Place a call driven by a TwiML URL or inline TwiML."""
        data = {"To": to, "From": sender}
        if url:
            data["Url"] = url
        else:
            data["Twiml"] = twiml or ""
        return await self._post("Calls.json", data)


# ============================================
# Channels
# ============================================

class _TwilioChannel(NotificationChannel):
    """Shared plumbing for channels that talk to Twilio."""

    def __init__(
        self,
        subscribers: Optional[List[str]] = None,
        sender: str = "",
        account_sid: str = "",
        auth_token: str = "",
        base_url: str = "https://api.twilio.com",
        enabled: bool = True,
        client: Optional[TwilioAPIClient] = None,
    ):
        super().__init__(subscribers, enabled)
        self.sender = sender
        self.client = client or TwilioAPIClient(account_sid, auth_token, base_url=base_url)

    async def close(self) -> None:
        await self.client.close()


class SmsChannel(_TwilioChannel):
    """Text message delivery through Twilio Messages."""

    name = "sms"

    async def send(self, recipient: str, message: str) -> None:
        try:
            await self.client.create_message(recipient, self.sender, message)
        except RuntimeError as e:
            raise DeliveryError(self.name, recipient, str(e)) from e


class VoiceChannel(_TwilioChannel):
    """
    Phone call delivery through Twilio Calls.

    With a callback URL Twilio fetches call instructions from it; without one
    the alert text is spoken with inline TwiML.
    """

    name = "voice"

    def __init__(self, *args, callback_url: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.callback_url = callback_url

    @staticmethod
    def build_twiml(message: str) -> str:
        """
        Example:
            >>> VoiceChannel.build_twiml("BTC is listed on kraken")
            '<Response><Say>BTC is listed on kraken</Say></Response>'
        """
        return f"<Response><Say>{escape(message)}</Say></Response>"

    async def send(self, recipient: str, message: str) -> None:
        try:
            if self.callback_url:
                await self.client.create_call(recipient, self.sender, url=self.callback_url)
            else:
                await self.client.create_call(recipient, self.sender, twiml=self.build_twiml(message))
        except RuntimeError as e:
            raise DeliveryError(self.name, recipient, str(e)) from e
