from datetime import datetime
from typing import Optional

from sqlalchemy.orm import sessionmaker

from lothis.database import dialect_insert
from lothis.logging_config import get_logger
from lothis.models import SeenDelivery

logger = get_logger("delivery_ledger")


class DeliveryLedger:
    """Set of already-processed WhatsApp delivery ids, keyed by primary key."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def already_seen(self, delivery_id: str) -> bool:
        with self._session_factory() as db:
            return db.get(SeenDelivery, delivery_id) is not None

    def mark_seen(self, delivery_id: str, seen_at: datetime) -> bool:
        """Record a delivery id. Returns False if it was already recorded."""
        with self._session_factory() as db:
            stmt = (
                dialect_insert(db, SeenDelivery)
                .values(delivery_id=delivery_id, seen_at=seen_at)
                .on_conflict_do_nothing(index_elements=[SeenDelivery.delivery_id])
            )
            result = db.execute(stmt)
            db.commit()
        return result.rowcount > 0

    def admit(self, delivery_id: Optional[str], seen_at: datetime) -> bool:
        """Atomic check-and-record. True means this caller owns the delivery.

        Deliveries without an id are always admitted.
        """
        if not delivery_id:
            return True

        admitted = self.mark_seen(delivery_id, seen_at)
        if not admitted:
            logger.info("Duplicate delivery dropped", extra={"context": {"delivery_id": delivery_id}})
        return admitted
