"""Delivery channels, one per provider, in dispatch priority order."""

from __future__ import annotations

from gatepass.core.config import Settings

from .base import AddressKind, BaseChannel, ChannelAdapter, DeliveryResult, HttpChannel
from .browser import WhatsAppWebChannel
from .email import SMTPEmailChannel
from .link import ManualLinkChannel, whatsapp_link
from .sms import TwilioSMSChannel
from .whatsapp import InfobipWhatsAppChannel, WhatsAppBusinessChannel


def build_channels(settings: Settings) -> list[ChannelAdapter]:
    """Instantiate every networked channel from settings, highest priority first."""

    timeout = settings.provider_timeout_seconds
    return [
        TwilioSMSChannel(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            timeout=timeout,
        ),
        SMTPEmailChannel(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.email_user,
            password=settings.email_password,
            timeout=timeout,
        ),
        WhatsAppBusinessChannel(
            access_token=settings.meta_access_token,
            phone_number_id=settings.meta_phone_number_id,
            api_version=settings.meta_api_version,
            timeout=timeout,
        ),
        InfobipWhatsAppChannel(
            api_key=settings.infobip_api_key,
            base_url=settings.infobip_base_url,
            sender=settings.infobip_sender,
            timeout=timeout,
        ),
        WhatsAppWebChannel(
            enabled=settings.whatsapp_web_enabled,
            user_data_dir=settings.whatsapp_web_user_data_dir,
            headless=settings.whatsapp_web_headless,
            login_timeout=settings.whatsapp_web_login_timeout_seconds,
        ),
    ]


__all__ = [
    "AddressKind",
    "BaseChannel",
    "ChannelAdapter",
    "DeliveryResult",
    "HttpChannel",
    "InfobipWhatsAppChannel",
    "ManualLinkChannel",
    "SMTPEmailChannel",
    "TwilioSMSChannel",
    "WhatsAppBusinessChannel",
    "WhatsAppWebChannel",
    "build_channels",
    "whatsapp_link",
]
