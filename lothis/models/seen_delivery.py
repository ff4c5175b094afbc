from sqlalchemy import Column, DateTime, Text

from lothis.database import Base


class SeenDelivery(Base):
    __tablename__ = "seen_deliveries"

    delivery_id = Column(Text, primary_key=True)  # WhatsApp message id (wamid.*)
    seen_at = Column(DateTime(timezone=True), nullable=False)
