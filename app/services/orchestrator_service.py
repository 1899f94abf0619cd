"""
RescueOrchestrator: per-message pipeline for the WhatsApp rescue webhook.

RECEIVED -> VERIFIED -> PARSED happen in the router. From there:
ENRICHED (media) -> HISTORY_LOADED -> COMPLETION_REQUESTED -> (TOOL_INVOKED)
-> REPLIED -> LOGGED.
"""

import logging

from langchain_core.messages import HumanMessage

from app.agents.rescue_agent import history_to_messages
from app.exceptions import WhatsAppSendError
from app.models.report_models import ConversationTurn
from app.services.payload_service import (
    IncomingMessage,
    MESSAGE_TYPE_IMAGE,
    describe_message,
    extract_image_urls,
)

logger = logging.getLogger(__name__)


VOICE_FALLBACK_MESSAGE = (
    "Lo siento, por ahora no puedo escuchar notas de voz. 🙏 "
    "Por favor escríbeme tu mensaje, y si quieres reportar un animal envíame una foto y tu ubicación."
)

VOICE_PLACEHOLDER = "[Nota de voz]"


class RescueOrchestrator:
    """Orchestrates the full conversation pipeline, decoupled from HTTP."""

    def __init__(self, whatsapp_service, media_service, conversation_service, rescue_agent):
        self.whatsapp = whatsapp_service
        self.media = media_service
        self.conversations = conversation_service
        self.agent = rescue_agent

    # =================================================================
    #  PUBLIC ENTRY POINT
    # =================================================================

    def process(self, message: IncomingMessage) -> dict:
        """Runs the pipeline for one verified, parsed message. Returns a JSON-serializable dict."""
        logger.info("Webhook WhatsApp Procesado:")
        logger.info("   %s | %s | %s", message.sender_name, message.sender_id, message.message_type)
        logger.info("-" * 30)

        if message.is_voice:
            return self._handle_voice(message)

        # --- ENRICH: media upload ---
        image_url = None
        if message.message_type == MESSAGE_TYPE_IMAGE and message.media_id:
            image_url = self.media.store_media(message.media_id, message.mime_type, message.sender_id)

        message_content = describe_message(message, image_url)

        # --- HISTORY ---
        history = self.conversations.get_history(message.sender_id)
        image_urls = self._uploaded_image_urls(message.sender_id, history)
        if image_url:
            image_urls.append(image_url)

        # --- COMPLETION (+ optional create_report) ---
        result = self.agent.invoke({
            "messages": history_to_messages(history) + [HumanMessage(content=message_content)],
            "sender_name": message.sender_name,
            "image_urls": image_urls,
            "report": None,
        })
        ai_response = result["reply"]
        report = result.get("report")

        # --- REPLY ---
        reply_sent = self._send(message.sender_id, ai_response)

        # --- LOG ---
        self._log_turn(message, message_content, ai_response)

        return {
            "status": "success",
            "report_created": report is not None,
            "reply_sent": reply_sent,
        }

    # =================================================================
    #  HELPERS
    # =================================================================

    def _handle_voice(self, message: IncomingMessage) -> dict:
        """Voice notes never reach media download nor the LLM."""
        logger.info("Nota de voz recibida de %s - respuesta fija", message.sender_id)
        reply_sent = self._send(message.sender_id, VOICE_FALLBACK_MESSAGE)
        self._log_turn(message, VOICE_PLACEHOLDER, VOICE_FALLBACK_MESSAGE)
        return {"status": "success", "report_created": False, "reply_sent": reply_sent}

    def _uploaded_image_urls(self, sender_id: str, history: list) -> list:
        """
        Image URLs from earlier image turns that point into the sender's bucket folder.
        Text turns and captions are user-typed, so annotations found there are not trusted.
        """
        urls = []
        for entry in history:
            if entry["role"] != "user" or entry.get("message_type") != MESSAGE_TYPE_IMAGE:
                continue
            for url in extract_image_urls(entry["content"]):
                if self.media.is_stored_image(url, sender_id):
                    urls.append(url)
                else:
                    logger.warning("URL de imagen no confiable en historial de %s: %s", sender_id, url)
        return urls

    def _send(self, to: str, text: str) -> bool:
        try:
            self.whatsapp.send_message(to, text)
            return True
        except WhatsAppSendError as e:
            logger.error("Error enviando respuesta a %s: %s", to, e)
            return False

    def _log_turn(self, message: IncomingMessage, content: str, ai_response: str) -> None:
        self.conversations.log_turn(ConversationTurn(
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            message=content,
            message_type=message.message_type,
            timestamp=message.timestamp,
            ai_response=ai_response,
        ))
