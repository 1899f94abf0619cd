"""
Pydantic schemas for the WhatsApp Cloud API webhook envelope.

ref: https://developers.facebook.com/docs/whatsapp/cloud-api/webhooks/payload-examples
Only the fields the rescue pipeline reads are declared; extra fields are ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppProfile(BaseModel):
    name: str = ""


class WhatsAppContact(BaseModel):
    profile: WhatsAppProfile = Field(default_factory=WhatsAppProfile)
    wa_id: str


class WhatsAppText(BaseModel):
    body: str


class WhatsAppMedia(BaseModel):
    """Image / audio / voice reference. The binary must be fetched separately."""
    id: str
    mime_type: str = ""
    sha256: Optional[str] = None
    caption: Optional[str] = None


class WhatsAppLocation(BaseModel):
    latitude: float
    longitude: float
    name: Optional[str] = None
    address: Optional[str] = None


class WhatsAppMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    id: str
    timestamp: str
    type: str

    text: Optional[WhatsAppText] = None
    image: Optional[WhatsAppMedia] = None
    audio: Optional[WhatsAppMedia] = None
    voice: Optional[WhatsAppMedia] = None
    location: Optional[WhatsAppLocation] = None


class WhatsAppMetadata(BaseModel):
    display_phone_number: str
    phone_number_id: str


class WhatsAppValue(BaseModel):
    messaging_product: str
    metadata: WhatsAppMetadata
    # Status callbacks (sent/delivered/read) arrive without contacts or messages
    contacts: List[WhatsAppContact] = Field(default_factory=list)
    messages: List[WhatsAppMessage] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    value: WhatsAppValue
    field: Optional[str] = None


class WhatsAppEntry(BaseModel):
    id: str
    changes: List[WhatsAppChange]


class WhatsAppWebhookPayload(BaseModel):
    object: str
    entry: List[WhatsAppEntry]
