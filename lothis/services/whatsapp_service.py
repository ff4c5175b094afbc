import httpx

from lothis.config import Settings
from lothis.logging_config import get_logger

logger = get_logger("whatsapp_service")

MAX_TEXT_LENGTH = 4096


class WhatsAppService:
    """Service for sending text messages through the WhatsApp Cloud API."""

    BASE_URL = "https://graph.facebook.com/{version}/{phone_number_id}/messages"

    def __init__(self, settings: Settings):
        self.token = settings.whatsapp_token
        self.timeout = settings.http_timeout_seconds
        self.url = self.BASE_URL.format(
            version=settings.whatsapp_api_version,
            phone_number_id=settings.whatsapp_phone_number_id,
        )

    def send_text(self, to: str, body: str) -> bool:
        """Send text to a WhatsApp user. Failures are logged, never raised."""
        if not to or not body:
            logger.warning(f"send_text: missing recipient={to!r} or body")
            return False

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body[:MAX_TEXT_LENGTH]},
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except Exception as e:
            logger.error(f"Error sending WhatsApp message: {e}", extra={"context": {"to": to}})
            return False

        if response.status_code != 200:
            logger.error(
                "WhatsApp send failed",
                extra={"context": {"to": to, "status": response.status_code, "body": response.text[:200]}},
            )
            return False

        logger.info(f"Delivered via WhatsApp: to={to}")
        return True
