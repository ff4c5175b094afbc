import time
from enum import Enum
from typing import Callable, Optional

import httpx

from lothis.config import Settings
from lothis.logging_config import get_logger

logger = get_logger("assistant_client")

LANGUAGE_INSTRUCTION = "Respond in language: {language}"

_REMOTE_TERMINAL_STATUSES = {
    "completed": "completed",
    "failed": "failed",
    "cancelled": "cancelled",
    "expired": "expired",
    "incomplete": "failed",
}


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"


class RemoteUnavailable(Exception):
    """Any failed exchange with the assistant service."""

    def __init__(self, operation: str, status_code: Optional[int] = None, detail: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{operation} failed: {status_code or 'no response'} {detail[:200]}".rstrip())


def build_content(text: str, language: Optional[str]) -> str:
    """Prefix user text with a machine-readable language tag when a preference is set."""
    if language:
        return f"[LANG:{language}] {text}"
    return text


class AssistantClient:
    """OpenAI Assistants v2 client: threads, messages and runs."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.assistant_id = settings.openai_assistant_id
        self.poll_interval_seconds = settings.run_poll_interval_seconds
        self.reply_history_limit = settings.reply_history_limit
        self._clock = clock
        self._sleep = sleep
        self._client = http_client or httpx.Client(
            base_url=settings.openai_base_url,
            timeout=settings.http_timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        }

    def close(self) -> None:
        self._client.close()

    def _request(self, operation: str, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"OpenAI {operation} transport error: {e}")
            raise RemoteUnavailable(operation, detail=str(e)) from e

        if not response.is_success:
            logger.error(
                f"OpenAI {operation} error",
                extra={"context": {"status": response.status_code, "body": response.text[:500]}},
            )
            raise RemoteUnavailable(operation, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteUnavailable(operation, response.status_code, "invalid JSON body") from e
        if not isinstance(data, dict):
            raise RemoteUnavailable(operation, response.status_code, "unexpected JSON body")
        return data

    def _require_id(self, operation: str, data: dict) -> str:
        object_id = data.get("id")
        if not object_id:
            raise RemoteUnavailable(operation, detail="response without id")
        return object_id

    def create_conversation(self) -> str:
        data = self._request("create_thread", "POST", "/threads", json={})
        thread_id = self._require_id("create_thread", data)
        logger.info(f"Created thread {thread_id}")
        return thread_id

    def append_message(self, conversation_handle: str, content: str) -> None:
        self._request(
            "add_message",
            "POST",
            f"/threads/{conversation_handle}/messages",
            json={"role": "user", "content": content},
        )

    def start_run(self, conversation_handle: str, language: Optional[str] = None) -> str:
        body = {"assistant_id": self.assistant_id}
        if language:
            body["additional_instructions"] = LANGUAGE_INSTRUCTION.format(language=language)
        data = self._request("create_run", "POST", f"/threads/{conversation_handle}/runs", json=body)
        return self._require_id("create_run", data)

    def get_run_status(self, conversation_handle: str, run_handle: str) -> str:
        data = self._request("poll_run", "GET", f"/threads/{conversation_handle}/runs/{run_handle}")
        status = data.get("status")
        if not isinstance(status, str):
            raise RemoteUnavailable("poll_run", detail="response without status")
        return status

    def await_run(self, conversation_handle: str, run_handle: str, timeout_seconds: float) -> RunOutcome:
        """
        Poll the run until the service reports a terminal status.

        Returns TIMED_OUT when the budget runs out first; the run itself is
        left alone and may still finish remotely.
        """
        started = self._clock()
        status = None
        while self._clock() - started < timeout_seconds:
            status = self.get_run_status(conversation_handle, run_handle)
            terminal = _REMOTE_TERMINAL_STATUSES.get(status)
            if terminal:
                outcome = RunOutcome(terminal)
                logger.info(
                    "Run finished",
                    extra={"context": {"thread_id": conversation_handle, "run_id": run_handle, "status": status}},
                )
                return outcome
            self._sleep(self.poll_interval_seconds)

        logger.warning(
            "Run wait timed out",
            extra={
                "context": {
                    "thread_id": conversation_handle,
                    "run_id": run_handle,
                    "last_status": status,
                    "timeout_seconds": timeout_seconds,
                }
            },
        )
        return RunOutcome.TIMED_OUT

    def fetch_latest_reply(self, conversation_handle: str) -> str:
        """Text of the newest assistant message among the most recent ones, or ''."""
        data = self._request(
            "list_messages",
            "GET",
            f"/threads/{conversation_handle}/messages",
            params={"limit": self.reply_history_limit, "order": "desc"},
        )
        messages = data.get("data")
        if not isinstance(messages, list):
            raise RemoteUnavailable("list_messages", detail="response without message list")

        message = next((m for m in messages if isinstance(m, dict) and m.get("role") == "assistant"), None)
        if not message or not isinstance(message.get("content"), list):
            return ""

        parts = []
        for block in message["content"]:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text = block.get("text")
            value = text.get("value") if isinstance(text, dict) else None
            if isinstance(value, str) and value:
                parts.append(value)
        return "".join(parts).strip()
