"""
WhatsApp Webhook Router — Thin HTTP layer
==========================================
GET: Meta subscription handshake.
POST: signature check -> envelope validation -> RescueOrchestrator.

Invalid payloads and internal failures are acknowledged with 200 so Meta
does not redeliver them (WEBHOOK_ACK_ON_ERROR=false switches failures to 500).
"""

import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from app.dependencies import get_orchestrator
from app.models.whatsapp_models import WhatsAppWebhookPayload
from app.services.orchestrator_service import RescueOrchestrator
from app.services.payload_service import extract_incoming_message
from app.services.signature_service import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "x-hub-signature-256"


def _ack_on_error() -> bool:
    return os.getenv("WEBHOOK_ACK_ON_ERROR", "true").lower() not in ("0", "false", "no")


@router.get("/api/webhook")
def verify_subscription(
    mode: str = Query(default=None, alias="hub.mode"),
    token: str = Query(default=None, alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
):
    """Handshake de suscripción: devuelve el challenge si el verify token coincide."""
    expected_token = os.getenv("WHATSAPP_VERIFY_TOKEN")
    if not expected_token:
        logger.warning("WHATSAPP_VERIFY_TOKEN not found in env - rechazando handshake")

    if mode == "subscribe" and expected_token and token == expected_token:
        logger.info("Webhook verificado por Meta")
        return PlainTextResponse(challenge)

    logger.warning("Handshake rechazado (mode=%s)", mode)
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/api/webhook")
async def receive_webhook(
    request: Request,
    orchestrator: RescueOrchestrator = Depends(get_orchestrator),
):
    # --- VERIFIED ---
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Webhook sin firma - rechazado")
        raise HTTPException(status_code=401, detail="Signature required")

    secret = os.getenv("WHATSAPP_WEBHOOK_SECRET")
    if not secret:
        logger.error("WHATSAPP_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    raw_body = await request.body()
    if not verify_signature(raw_body, signature, secret):
        logger.warning("Firma inválida - rechazado")
        raise HTTPException(status_code=401, detail="Invalid signature")

    # --- PARSED ---
    try:
        payload = WhatsAppWebhookPayload.model_validate_json(raw_body)
    except ValidationError as e:
        logger.warning("Payload inválido, se confirma sin procesar: %s", e.errors(include_url=False))
        return {"status": "ignored", "reason": "invalid_payload"}

    message = extract_incoming_message(payload)
    if message is None:
        logger.info("Webhook sin mensajes (status update) - ignorando")
        return {"status": "ignored", "reason": "no_messages"}

    # --- PIPELINE ---
    try:
        return await run_in_threadpool(orchestrator.process, message)
    except Exception:
        logger.exception("Error procesando webhook de %s", message.sender_id)
        if _ack_on_error():
            return {"status": "error"}
        return JSONResponse(status_code=500, content={"status": "error"})
