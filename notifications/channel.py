"""
Notification Channel — Abstract Contract for Delivery Mechanisms

Every delivery mechanism (email, SMS, voice) implements NotificationChannel.
Channels are built once at startup from settings and injected into the
NotificationDispatcher; they never read configuration on the hot path.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class DeliveryError(Exception):
    """Delivering one message to one recipient failed."""

    def __init__(self, channel: str, recipient: str, message: str):
        self.channel = channel
        self.recipient = recipient
        super().__init__(f"{channel} -> {recipient}: {message}")


class NotificationChannel(ABC):
    """
    Abstract Base Class for Notification Channels

    Attributes:
        name: Channel identifier ("email", "sms", "voice")
        enabled: Whether the dispatcher should use this channel
        subscribers: Recipients of every alert sent through this channel

    Abstract Methods:
        - send: Deliver one message to one recipient
    """

    name: str

    def __init__(self, subscribers: Optional[List[str]] = None, enabled: bool = True):
        self.subscribers: List[str] = list(subscribers or [])
        self.enabled = enabled

    @abstractmethod
    async def send(self, recipient: str, message: str) -> None:
        """
        Deliver `message` to `recipient`.

        Raises:
            DeliveryError: If the provider rejects or fails the delivery
        """
        ...

    async def close(self) -> None:
        """Release provider connections. Default does nothing."""
        pass

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(enabled={self.enabled}, "
            f"subscribers={len(self.subscribers)})>"
        )
