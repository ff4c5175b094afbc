from lothis.models.chat_session import ChatSession
from lothis.models.seen_delivery import SeenDelivery

__all__ = [
    "ChatSession",
    "SeenDelivery",
]
