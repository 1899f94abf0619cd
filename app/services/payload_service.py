"""
PayloadService: Extracts and normalizes the WhatsApp webhook envelope into an
IncomingMessage, and renders that message as prompt text for the agent.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from app.models.whatsapp_models import WhatsAppWebhookPayload

logger = logging.getLogger(__name__)


MESSAGE_TYPE_TEXT = "text"
MESSAGE_TYPE_IMAGE = "image"
MESSAGE_TYPE_LOCATION = "location"
MESSAGE_TYPE_VOICE = "voice"
MESSAGE_TYPE_UNSUPPORTED = "unsupported"

# WhatsApp sends recorded notes as 'voice' and forwarded audio files as 'audio'
_VOICE_TYPES = ("audio", "voice")

_IMAGE_ANNOTATION = "[Imagen recibida: {url}]"
_IMAGE_ANNOTATION_RE = re.compile(r"\[Imagen recibida: (\S+?)\]")


@dataclass(frozen=True)
class IncomingMessage:
    """Normalized inbound WhatsApp message. Immutable once received."""
    sender_id: str
    message_id: str
    message_type: str
    timestamp: datetime
    sender_name: str = ""
    original_type: str = ""
    text: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_name: Optional[str] = None
    location_address: Optional[str] = None

    @property
    def is_voice(self) -> bool:
        return self.message_type == MESSAGE_TYPE_VOICE

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def parse_provider_timestamp(value: str) -> datetime:
    """WhatsApp timestamps are unix seconds as strings. Falls back to now (UTC)."""
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Timestamp inválido en payload: %r, usando hora actual", value)
        return datetime.now(timezone.utc)


def extract_incoming_message(payload: WhatsAppWebhookPayload) -> Optional[IncomingMessage]:
    """
    Extract the first message of the first change of the first entry.
    Returns None for envelopes without messages (status callbacks).
    """
    if not payload.entry or not payload.entry[0].changes:
        return None

    value = payload.entry[0].changes[0].value
    if not value.messages:
        return None

    message = value.messages[0]
    contact = next((c for c in value.contacts if c.wa_id == message.from_), None)
    if contact is None and value.contacts:
        contact = value.contacts[0]

    sender_id = contact.wa_id if contact else message.from_
    sender_name = contact.profile.name if contact else ""

    fields = {
        "sender_id": sender_id,
        "sender_name": sender_name,
        "message_id": message.id,
        "original_type": message.type,
        "timestamp": parse_provider_timestamp(message.timestamp),
    }

    if message.type in _VOICE_TYPES:
        media = message.voice or message.audio
        return IncomingMessage(
            message_type=MESSAGE_TYPE_VOICE,
            media_id=media.id if media else None,
            mime_type=media.mime_type if media else None,
            **fields,
        )

    if message.type == MESSAGE_TYPE_TEXT and message.text:
        return IncomingMessage(message_type=MESSAGE_TYPE_TEXT, text=message.text.body, **fields)

    if message.type == MESSAGE_TYPE_IMAGE and message.image:
        return IncomingMessage(
            message_type=MESSAGE_TYPE_IMAGE,
            text=message.image.caption,
            media_id=message.image.id,
            mime_type=message.image.mime_type,
            **fields,
        )

    if message.type == MESSAGE_TYPE_LOCATION and message.location:
        loc = message.location
        return IncomingMessage(
            message_type=MESSAGE_TYPE_LOCATION,
            latitude=loc.latitude,
            longitude=loc.longitude,
            location_name=loc.name,
            location_address=loc.address,
            **fields,
        )

    logger.info("Tipo de mensaje no soportado: %s", message.type)
    return IncomingMessage(message_type=MESSAGE_TYPE_UNSUPPORTED, **fields)


def describe_message(message: IncomingMessage, image_url: Optional[str] = None) -> str:
    """
    Render the message as the user turn the LLM sees.
    Media and locations become inline textual annotations.
    """
    parts = []
    if message.text:
        parts.append(message.text)

    if message.message_type == MESSAGE_TYPE_IMAGE:
        if image_url:
            parts.append(_IMAGE_ANNOTATION.format(url=image_url))
        else:
            parts.append("[Imagen recibida, pero no se pudo guardar]")

    elif message.message_type == MESSAGE_TYPE_LOCATION and message.has_location:
        parts.append(f"[Ubicación compartida: lat={message.latitude}, lng={message.longitude}]")
        place = ", ".join(p for p in (message.location_name, message.location_address) if p)
        if place:
            parts.append(f"[Lugar: {place}]")

    elif message.message_type == MESSAGE_TYPE_UNSUPPORTED:
        parts.append(f"[Mensaje de tipo {message.original_type or 'desconocido'} recibido]")

    return "\n".join(parts) if parts else "[Mensaje vacío]"


def extract_image_urls(text: str) -> List[str]:
    """URLs of images previously annotated by describe_message()."""
    if not text:
        return []
    return _IMAGE_ANNOTATION_RE.findall(text)
