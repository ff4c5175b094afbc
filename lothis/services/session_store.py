from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import sessionmaker

from lothis.database import dialect_insert
from lothis.logging_config import get_logger
from lothis.models import ChatSession

logger = get_logger("session_store")


class SessionStore:
    """Durable chat_id -> (conversation handle, language) mapping.

    Every write commits before returning.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, chat_id: str) -> Optional[ChatSession]:
        with self._session_factory() as db:
            return db.get(ChatSession, chat_id)

    def upsert(
        self,
        chat_id: str,
        conversation_handle: Optional[str],
        language: Optional[str],
        updated_at: datetime,
        *,
        authoritative_language: bool = False,
    ) -> ChatSession:
        """Create or merge a session row and return what is stored afterwards.

        A stored handle is never replaced: under concurrent first contact the
        first committed handle wins and later ones are discarded. A stored
        language is only replaced when `authoritative_language` is set
        (explicit language commands); None never clears either field.
        """
        with self._session_factory() as db:
            stmt = dialect_insert(db, ChatSession).values(
                chat_id=chat_id,
                conversation_handle=conversation_handle,
                language=language,
                updated_at=updated_at,
            )
            if authoritative_language:
                language_expr = func.coalesce(stmt.excluded.language, ChatSession.language)
            else:
                language_expr = func.coalesce(ChatSession.language, stmt.excluded.language)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ChatSession.chat_id],
                set_={
                    "conversation_handle": func.coalesce(
                        ChatSession.conversation_handle, stmt.excluded.conversation_handle
                    ),
                    "language": language_expr,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            db.execute(stmt)
            db.commit()

            stored = db.get(ChatSession, chat_id, populate_existing=True)

        if conversation_handle and stored.conversation_handle != conversation_handle:
            logger.warning(
                "Discarded conversation handle, session already bound",
                extra={
                    "context": {
                        "chat_id": chat_id,
                        "discarded": conversation_handle,
                        "kept": stored.conversation_handle,
                    }
                },
            )
        return stored

    def set_language(self, chat_id: str, language: str, updated_at: Optional[datetime] = None) -> bool:
        """Overwrite the language of an existing session. Missing rows are a no-op."""
        values = {"language": language}
        if updated_at is not None:
            values["updated_at"] = updated_at
        with self._session_factory() as db:
            result = db.execute(update(ChatSession).where(ChatSession.chat_id == chat_id).values(**values))
            db.commit()
        if result.rowcount == 0:
            logger.info("set_language on unknown session ignored", extra={"context": {"chat_id": chat_id}})
            return False
        return True
