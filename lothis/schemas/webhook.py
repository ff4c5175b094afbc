from typing import List, Optional

from pydantic import BaseModel, Field


class InboundEvent(BaseModel):
    chat_id: str
    text: Optional[str] = None
    delivery_id: Optional[str] = None


class WhatsAppText(BaseModel):
    body: Optional[str] = None


class WhatsAppMessage(BaseModel):
    id: Optional[str] = None
    from_user: Optional[str] = Field(default=None, alias="from")
    timestamp: Optional[str] = None
    type: Optional[str] = "text"
    text: Optional[WhatsAppText] = None


class WhatsAppChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    messages: List[WhatsAppMessage] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: Optional[WhatsAppChangeValue] = None


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: List[WhatsAppChange] = Field(default_factory=list)


class WhatsAppWebhook(BaseModel):
    object: Optional[str] = None
    entry: List[WhatsAppEntry] = Field(default_factory=list)

    def iter_events(self) -> List[InboundEvent]:
        """Flatten every inbound message in the envelope. Status callbacks carry none."""
        events = []
        for entry in self.entry:
            for change in entry.changes:
                if not change.value:
                    continue
                for message in change.value.messages:
                    if not message.from_user:
                        continue
                    events.append(
                        InboundEvent(
                            chat_id=message.from_user,
                            text=message.text.body if message.text else None,
                            delivery_id=message.id,
                        )
                    )
        return events


class WebhookResponse(BaseModel):
    success: bool
    message: str
    events: int = 0
