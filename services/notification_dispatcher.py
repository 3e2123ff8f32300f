"""
Notification Dispatcher

Fans one TransitionEvent out to every enabled notification channel.

- Channels run concurrently with each other.
- Within a channel, subscribers are sent to concurrently but never more than
  `max_concurrency` at a time (provider rate limits).
- Every failure is captured as a DeliveryOutcome(success=False) and logged;
  nothing raised by a channel reaches the caller.
"""

import asyncio
from typing import List, Sequence

from core.logging import get_logger, log_delivery
from core.schemas import DeliveryOutcome, TransitionEvent
from notifications.channel import NotificationChannel


class NotificationDispatcher:
    """
    Delivers transition alerts over the injected channels.

    Example:
        >>> dispatcher = NotificationDispatcher(build_channels(settings))
        >>> outcomes = await dispatcher.notify(event)
        >>> failed = [o for o in outcomes if not o.success]
    """

    def __init__(self, channels: Sequence[NotificationChannel], max_concurrency: int = 10) -> None:
        self.channels = list(channels)
        self.max_concurrency = max_concurrency
        self._logger = get_logger(__name__)

    @property
    def enabled_channels(self) -> List[NotificationChannel]:
        return [channel for channel in self.channels if channel.enabled]

    async def notify(self, event: TransitionEvent) -> List[DeliveryOutcome]:
        """
        Send the event's message through every enabled channel.

        Returns:
            One DeliveryOutcome per (channel, subscriber) attempted
        """
        message = event.message
        channels = self.enabled_channels
        if not channels:
            self._logger.debug(f"No enabled channels for: {message}")
            return []

        results = await asyncio.gather(
            *(self._deliver_channel(channel, event) for channel in channels)
        )

        outcomes = [outcome for channel_outcomes in results for outcome in channel_outcomes]
        failed = sum(1 for outcome in outcomes if not outcome.success)
        self._logger.info(
            f"Notified '{message}': {len(outcomes) - failed} delivered, {failed} failed"
        )
        return outcomes

    async def _deliver_channel(self, channel: NotificationChannel, event: TransitionEvent) -> List[DeliveryOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def deliver(recipient: str) -> DeliveryOutcome:
            async with semaphore:
                return await self._deliver_one(channel, recipient, event)

        return list(await asyncio.gather(*(deliver(r) for r in channel.subscribers)))

    async def _deliver_one(self, channel: NotificationChannel, recipient: str, event: TransitionEvent) -> DeliveryOutcome:
        try:
            await channel.send(recipient, event.message)
            outcome = DeliveryOutcome(channel=channel.name, recipient=recipient, success=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            outcome = DeliveryOutcome(
                channel=channel.name,
                recipient=recipient,
                success=False,
                error=f"{type(e).__name__}: {e}",
            )
        log_delivery(outcome, event)
        return outcome

    async def close(self) -> None:
        """Close every channel's provider connections."""
        for channel in self.channels:
            try:
                await channel.close()
            except Exception as e:
                self._logger.error(f"Error closing {channel.name} channel: {e}")
