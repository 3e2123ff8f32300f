"""
Notifications Package

Delivery channels for market alerts:
- channel.py: NotificationChannel interface and DeliveryError
- email_channel.py: SMTP email
- twilio.py: Twilio SMS and voice calls

build_channels() instantiates every channel once at startup; disabled ones are
still built (so they show up in logs) but the dispatcher skips them.
"""

from typing import List

from core.config import Settings
from notifications.channel import DeliveryError, NotificationChannel
from notifications.email_channel import EmailChannel
from notifications.twilio import SmsChannel, VoiceChannel

__all__ = [
    "DeliveryError",
    "EmailChannel",
    "NotificationChannel",
    "SmsChannel",
    "VoiceChannel",
    "build_channels",
]


def build_channels(config: Settings) -> List[NotificationChannel]:
    """Create the email, SMS and voice channels from settings."""
    return [
        EmailChannel(
            config.email_subscribers_list,
            sender=config.email_from,
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            enabled=config.email_enabled,
        ),
        SmsChannel(
            config.sms_subscribers_list,
            sender=config.sms_from,
            account_sid=config.sms_twilio_account_sid,
            auth_token=config.sms_twilio_auth_token,
            base_url=config.twilio_base_url,
            enabled=config.sms_enabled,
        ),
        VoiceChannel(
            config.voice_subscribers_list,
            sender=config.voice_from,
            account_sid=config.voice_twilio_account_sid,
            auth_token=config.voice_twilio_auth_token,
            base_url=config.twilio_base_url,
            enabled=config.voice_enabled,
            callback_url=config.voice_callback_url,
        ),
    ]
