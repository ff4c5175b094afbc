from typing import Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from lothis.config import Settings, get_settings
from lothis.database import create_db_engine, create_session_factory, init_db
from lothis.logging_config import get_logger, setup_logging
from lothis.routers import webhook
from lothis.services.assistant_client import AssistantClient
from lothis.services.commands import CommandInterpreter
from lothis.services.delivery_ledger import DeliveryLedger
from lothis.services.orchestrator import SessionOrchestrator
from lothis.services.session_store import SessionStore
from lothis.services.whatsapp_service import WhatsAppService

logger = get_logger("main")


def build_orchestrator(settings: Settings) -> SessionOrchestrator:
    """Wire storage, assistant client and WhatsApp transport from one settings value."""
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    session_factory = create_session_factory(engine)

    store = SessionStore(session_factory)
    assistant = AssistantClient(settings)
    return SessionOrchestrator(
        store=store,
        ledger=DeliveryLedger(session_factory),
        interpreter=CommandInterpreter(store, assistant),
        assistant=assistant,
        transport=WhatsAppService(settings),
        run_timeout_seconds=settings.run_timeout_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    orchestrator: Optional[SessionOrchestrator] = None,
) -> FastAPI:
    """Application factory: `uvicorn lothis.main:create_app --factory`."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Lothis WhatsApp Bot",
        description="Relays WhatsApp messages to an OpenAI assistant",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    app.include_router(webhook.router)

    @app.on_event("shutdown")
    def close_clients() -> None:
        assistant = getattr(app.state.orchestrator, "assistant", None)
        if isinstance(assistant, AssistantClient):
            assistant.close()

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Lothis WhatsApp Bot is running ✨"

    logger.info("Lothis relay configured", extra={"context": {"database_url": settings.database_url.split("@")[-1]}})
    return app
