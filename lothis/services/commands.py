from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from lothis.logging_config import get_logger
from lothis.services.assistant_client import AssistantClient
from lothis.services.replies import (
    MSG_EMPTY_TEXT,
    MSG_LANG_HELP,
    MSG_LANGUAGE_SET,
    MSG_START,
    SUPPORTED_LANGUAGES,
    get_reply,
)
from lothis.services.session_store import SessionStore

logger = get_logger("commands")

START_ALIASES = {"start", "/start"}
LANG_HELP_ALIASES = {"/lang"}


class CommandKind(str, Enum):
    EMPTY = "empty"
    START = "start"
    LANG_HELP = "lang_help"
    SET_LANGUAGE = "set_language"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    language: Optional[str] = None


def classify(text: Optional[str]) -> Command:
    """Classify inbound text against the fixed command vocabulary."""
    stripped = (text or "").strip()
    if not stripped:
        return Command(CommandKind.EMPTY)

    token = stripped.lower()
    if token in START_ALIASES:
        return Command(CommandKind.START)
    if token in LANG_HELP_ALIASES:
        return Command(CommandKind.LANG_HELP)
    if token.startswith("/") and token[1:] in SUPPORTED_LANGUAGES:
        return Command(CommandKind.SET_LANGUAGE, language=token[1:])
    return Command(CommandKind.PASSTHROUGH)


class CommandInterpreter:
    """Answers control commands inline; everything else is passed through."""

    def __init__(
        self,
        store: SessionStore,
        assistant: AssistantClient,
        *,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.assistant = assistant
        self._now = now

    def _stored_language(self, chat_id: str) -> Optional[str]:
        session = self.store.get(chat_id)
        return session.language if session else None

    def interpret(self, chat_id: str, text: Optional[str]) -> Optional[str]:
        """Return the reply for a command, or None when the text is a passthrough message."""
        command = classify(text)

        if command.kind == CommandKind.PASSTHROUGH:
            return None
        if command.kind == CommandKind.EMPTY:
            return get_reply(MSG_EMPTY_TEXT, self._stored_language(chat_id))
        if command.kind == CommandKind.START:
            return get_reply(MSG_START, self._stored_language(chat_id))
        if command.kind == CommandKind.LANG_HELP:
            return get_reply(MSG_LANG_HELP, self._stored_language(chat_id))

        self.set_language(chat_id, command.language)
        return get_reply(MSG_LANGUAGE_SET, command.language)

    def set_language(self, chat_id: str, language: str) -> None:
        """Bind `language` to the chat, creating the session and thread when missing.

        May raise RemoteUnavailable when a thread has to be created.
        """
        session = self.store.get(chat_id)
        if session and session.conversation_handle:
            self.store.set_language(chat_id, language, self._now())
        else:
            handle = self.assistant.create_conversation()
            self.store.upsert(chat_id, handle, language, self._now(), authoritative_language=True)

        logger.info("Language set", extra={"context": {"chat_id": chat_id, "language": language}})
