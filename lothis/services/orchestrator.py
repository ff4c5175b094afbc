from datetime import datetime, timezone
from typing import Callable, Optional

from lothis.logging_config import LoggerAdapter, bind, get_logger
from lothis.models import ChatSession
from lothis.services.assistant_client import AssistantClient, RemoteUnavailable, RunOutcome, build_content
from lothis.services.commands import CommandInterpreter
from lothis.services.delivery_ledger import DeliveryLedger
from lothis.services.replies import MSG_EMPTY_REPLY, MSG_RUN_FAILED, get_reply
from lothis.services.session_store import SessionStore
from lothis.services.whatsapp_service import WhatsAppService

logger = get_logger("orchestrator")

DEFAULT_RUN_TIMEOUT_SECONDS = 25.0


class SessionOrchestrator:
    """Handles one inbound chat message end to end: dedup, commands, assistant run, reply."""

    def __init__(
        self,
        store: SessionStore,
        ledger: DeliveryLedger,
        interpreter: CommandInterpreter,
        assistant: AssistantClient,
        transport: WhatsAppService,
        *,
        run_timeout_seconds: float = DEFAULT_RUN_TIMEOUT_SECONDS,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.ledger = ledger
        self.interpreter = interpreter
        self.assistant = assistant
        self.transport = transport
        self.run_timeout_seconds = run_timeout_seconds
        self._now = now

    def handle_inbound_message(
        self,
        chat_id: str,
        text: Optional[str],
        delivery_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Process one delivery and send the reply.

        Returns the text that was sent, or None when the delivery was a duplicate.
        """
        if not self.ledger.admit(delivery_id, self._now()):
            return None

        log = bind(logger, chat_id=chat_id, delivery_id=delivery_id)
        try:
            reply = self.interpreter.interpret(chat_id, text)
            if reply is None:
                reply = self._converse(chat_id, text.strip(), log)
        except RemoteUnavailable as e:
            log.error("Assistant unavailable", context={"operation": e.operation, "error": str(e)})
            reply = get_reply(MSG_RUN_FAILED, self._stored_language(chat_id))

        self._send(chat_id, reply, log)
        return reply

    def resolve_session(self, chat_id: str) -> ChatSession:
        """Return the chat's session with a conversation handle, creating the thread if needed."""
        session = self.store.get(chat_id)
        if session is None or not session.conversation_handle:
            handle = self.assistant.create_conversation()
            return self.store.upsert(chat_id, handle, None, self._now())
        return self.store.upsert(chat_id, None, None, self._now())

    def _converse(self, chat_id: str, text: str, log: LoggerAdapter) -> str:
        session = self.resolve_session(chat_id)
        handle = session.conversation_handle
        language = session.language

        self.assistant.append_message(handle, build_content(text, language))
        run_id = self.assistant.start_run(handle, language)
        outcome = self.assistant.await_run(handle, run_id, self.run_timeout_seconds)

        if outcome != RunOutcome.COMPLETED:
            log.warning("Run not completed", context={"thread_id": handle, "run_id": run_id, "outcome": outcome.value})
            return get_reply(MSG_RUN_FAILED, language)

        reply = self.assistant.fetch_latest_reply(handle)
        if not reply:
            log.warning("Empty assistant reply", context={"thread_id": handle})
            return get_reply(MSG_EMPTY_REPLY, language)
        return reply

    def _stored_language(self, chat_id: str) -> Optional[str]:
        session = self.store.get(chat_id)
        return session.language if session else None

    def _send(self, chat_id: str, text: str, log: LoggerAdapter) -> None:
        if not self.transport.send_text(chat_id, text):
            log.warning("Reply not delivered")
