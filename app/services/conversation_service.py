import logging
from typing import List, Dict

from app.models.report_models import ConversationTurn

logger = logging.getLogger(__name__)

# Maximum number of previous turns to include for context
MAX_CONTEXT_MESSAGES = 10


class ConversationService:
    """
    Servicio para gestionar el historial de conversaciones de WhatsApp en Supabase.
    Cada fila de `whatsapp_messages` es un turno: mensaje del usuario + respuesta de la IA.
    """

    TABLE = "whatsapp_messages"

    def __init__(self, supabase_client):
        self.client = supabase_client

    def get_history(self, sender_id: str, limit: int = MAX_CONTEXT_MESSAGES) -> List[Dict]:
        """
        Obtiene los últimos `limit` turnos del remitente en orden cronológico,
        aplanados como mensajes alternos user/assistant.

        Returns:
            Lista de diccionarios {role, content} (los de usuario incluyen
            message_type). Lista vacía si no hay
            historial o si la lectura falla (no es fatal).
        """
        if not self.client:
            logger.error("Supabase client not initialized")
            return []

        try:
            response = self.client.table(self.TABLE)\
                .select('message, message_type, ai_response, timestamp')\
                .eq('sender_id', sender_id)\
                .order('timestamp', desc=True)\
                .limit(limit)\
                .execute()
        except Exception as e:
            logger.error(f"Error obteniendo historial: {e}")
            return []

        rows = list(reversed(response.data or []))
        history = []
        for row in rows:
            history.append({
                "role": "user",
                "content": row.get("message") or "",
                "message_type": row.get("message_type") or "",
            })
            history.append({"role": "assistant", "content": row.get("ai_response") or ""})

        logger.info(f"Historial cargado: {len(rows)} turnos para {sender_id}")
        return history

    def log_turn(self, turn: ConversationTurn) -> bool:
        """
        Guarda un turno (mensaje + respuesta IA).

        Returns:
            True si se guardó exitosamente, False si hubo error
        """
        if not self.client:
            logger.error("Supabase client not initialized")
            return False

        try:
            self.client.table(self.TABLE).insert({
                'sender_id': turn.sender_id,
                'sender_name': turn.sender_name,
                'message': turn.message,
                'message_type': turn.message_type,
                'timestamp': turn.timestamp.isoformat(),
                'ai_response': turn.ai_response,
            }).execute()

            logger.info(f"Turno guardado: {turn.message_type} - {len(turn.ai_response)} caracteres de respuesta")
            return True

        except Exception as e:
            logger.error(f"Error guardando turno: {e}")
            return False
