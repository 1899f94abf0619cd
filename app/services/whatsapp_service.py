import os
import logging
import requests
from dotenv import load_dotenv

from app.exceptions import WhatsAppSendError

load_dotenv()

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"


class WhatsAppService:
    """
    Cliente mínimo de la WhatsApp Business Cloud API (Graph API).
    Envía mensajes de texto y expone las cabeceras/URLs que usa MediaService.
    """

    def __init__(self, access_token: str = None, phone_number_id: str = None, api_version: str = None):
        self.access_token = access_token or os.getenv("WHATSAPP_ACCESS_TOKEN")
        self.phone_number_id = phone_number_id or os.getenv("WHATSAPP_PHONE_NUMBER_ID")
        self.api_version = api_version or os.getenv("WHATSAPP_API_VERSION", "v17.0")
        self.timeout = float(os.getenv("WHATSAPP_HTTP_TIMEOUT", "30"))

        if not self.access_token:
            logger.warning("WHATSAPP_ACCESS_TOKEN not found in env")
        if not self.phone_number_id:
            logger.warning("WHATSAPP_PHONE_NUMBER_ID not found in env")

    @property
    def headers(self) -> dict:
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
        }

    def graph_url(self, path: str) -> str:
        return f"{GRAPH_API_BASE_URL}/{self.api_version}/{path}"

    def send_message(self, to: str, message: str) -> dict:
        """
        Envía un mensaje de texto al remitente original.
        Cualquier respuesta no-2xx es un fallo definitivo (sin reintentos).

        Raises:
            WhatsAppSendError
        """
        url = self.graph_url(f"{self.phone_number_id}/messages")
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"body": message},
        }

        try:
            logger.info("Enviando mensaje de WhatsApp a %s...", to)
            response = requests.post(url, headers=self.headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise WhatsAppSendError(f"HTTP request failed: {e}") from e

        if not response.ok:
            logger.error("WhatsApp API error: %s - %s", response.status_code, response.text)
            raise WhatsAppSendError(f"WhatsApp API returned {response.status_code}")

        logger.info("Mensaje enviado a %s", to)
        try:
            return response.json()
        except ValueError:
            logger.warning("Respuesta de WhatsApp sin JSON válido (status %s)", response.status_code)
            return {}
