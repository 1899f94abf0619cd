from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

AnimalType = Literal["dog", "cat", "other"]
ReportStatus = Literal["active", "resolved"]


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90, description="Latitud donde se vio al animal.")
    lng: float = Field(ge=-180, le=180, description="Longitud donde se vio al animal.")


class CreateReportArgs(BaseModel):
    """
    Crea un reporte de rescate animal en el mapa.
    Usar SOLO cuando el usuario ya envió una foto del animal, su ubicación
    y una descripción de la situación.
    """
    type: AnimalType = Field(
        description="Tipo de animal: 'dog' (perro), 'cat' (gato) u 'other' (otro)."
    )
    description: str = Field(
        min_length=1,
        description="Descripción breve del animal y su estado (heridas, comportamiento, lugar exacto)."
    )
    location: Location = Field(
        description="Coordenadas donde se encuentra el animal, tomadas de la ubicación compartida por el usuario."
    )
    image_url: str = Field(
        min_length=1,
        description="URL pública de la foto enviada por el usuario. Usa EXACTAMENTE la URL indicada en [Imagen recibida: ...]."
    )


class Report(BaseModel):
    """Row of the `reports` table."""
    id: str
    lat: float
    lng: float
    image_url: str
    type: AnimalType
    description: str
    timestamp: str
    status: ReportStatus = "active"
    created_at: Optional[str] = None

    def to_map_marker(self) -> dict:
        """Shape consumed by the map frontend (position grouped as {lat, lng})."""
        return {
            "id": self.id,
            "position": {"lat": self.lat, "lng": self.lng},
            "image_url": self.image_url,
            "type": self.type,
            "description": self.description,
            "timestamp": self.timestamp,
            "status": self.status,
        }


class ConversationTurn(BaseModel):
    """One user message paired with the assistant reply, as stored in `whatsapp_messages`."""
    sender_id: str
    sender_name: str = ""
    message: str
    message_type: str
    timestamp: datetime
    ai_response: str
