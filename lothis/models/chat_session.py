from sqlalchemy import Column, DateTime, Text

from lothis.database import Base


class ChatSession(Base):
    __tablename__ = "sessions"

    chat_id = Column(Text, primary_key=True)  # WhatsApp wa_id
    conversation_handle = Column(Text)  # OpenAI thread id
    language = Column(Text)  # nl, en, ... or NULL when unset
    updated_at = Column(DateTime(timezone=True), nullable=False)
