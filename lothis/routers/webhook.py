import hmac

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from lothis.logging_config import bind, get_logger
from lothis.schemas.webhook import InboundEvent, WebhookResponse, WhatsAppWebhook
from lothis.services.orchestrator import SessionOrchestrator

logger = get_logger("webhook")

router = APIRouter()


def get_orchestrator(request: Request) -> SessionOrchestrator:
    return request.app.state.orchestrator


def process_event(orchestrator: SessionOrchestrator, event: InboundEvent) -> None:
    """Background unit of work for one delivery; failures end here."""
    try:
        orchestrator.handle_inbound_message(event.chat_id, event.text, event.delivery_id)
    except Exception as e:
        bind(logger, chat_id=event.chat_id, delivery_id=event.delivery_id).error(
            f"Inbound message processing failed: {e}", exc_info=True
        )


@router.get("/webhook")
async def verify_webhook(request: Request):
    """Meta subscription handshake: echo hub.challenge when the verify token matches."""
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge", "")

    expected = request.app.state.settings.verify_token
    if mode == "subscribe" and hmac.compare_digest((token or "").encode(), expected.encode()):
        logger.info("Webhook verified")
        return PlainTextResponse(challenge, status_code=status.HTTP_200_OK)

    logger.warning("Webhook verification failed", extra={"context": {"mode": mode}})
    return Response(status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(request: Request, background_tasks: BackgroundTasks):
    """
    Acknowledge WhatsApp deliveries immediately.

    Every message event is processed after the response has been sent.
    """
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookResponse(success=True, message="Client disconnected")
    except ValueError as exc:
        logger.warning("Webhook payload is not valid JSON", extra={"context": {"error": str(exc)}})
        return WebhookResponse(success=False, message="Invalid JSON payload")

    if not isinstance(payload, dict):
        return WebhookResponse(success=False, message="Invalid payload format")

    try:
        webhook = WhatsAppWebhook.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)}})
        return WebhookResponse(success=False, message="Invalid webhook payload")

    events = webhook.iter_events()
    if not events:
        return WebhookResponse(success=True, message="No message events")

    orchestrator = get_orchestrator(request)
    for event in events:
        background_tasks.add_task(process_event, orchestrator, event)

    logger.info(
        "Webhook received",
        extra={"context": {"events": len(events), "delivery_ids": [e.delivery_id for e in events]}},
    )
    return WebhookResponse(success=True, message="Accepted", events=len(events))
