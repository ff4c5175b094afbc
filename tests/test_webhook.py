import hmac
from unittest.mock import Mock, call, patch

import pytest
from fastapi.testclient import TestClient

from lothis.main import create_app
from lothis.routers.webhook import process_event
from lothis.schemas.webhook import InboundEvent, WhatsAppWebhook
from lothis.services.assistant_client import AssistantClient, RunOutcome
from lothis.services.commands import CommandInterpreter
from lothis.services.orchestrator import SessionOrchestrator
from lothis.services.whatsapp_service import WhatsAppService


def _payload(*messages, statuses=None):
    value = {"messaging_product": "whatsapp", "metadata": {"phone_number_id": "1234567890"}}
    if messages:
        value["messages"] = list(messages)
    if statuses:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA_ID", "changes": [{"field": "messages", "value": value}]}],
    }


def _text_message(sender, body, message_id):
    return {"from": sender, "id": message_id, "timestamp": "1714564800", "type": "text", "text": {"body": body}}


@pytest.fixture
def orchestrator():
    return Mock()


@pytest.fixture
def client(settings, orchestrator):
    return TestClient(create_app(settings, orchestrator=orchestrator))


class TestVerification:
    def test_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )
        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "123"},
        )
        assert response.status_code == 403

    def test_wrong_mode_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "123"},
        )
        assert response.status_code == 403

    def test_missing_token_forbidden(self, client):
        response = client.get("/webhook", params={"hub.mode": "subscribe", "hub.challenge": "123"})
        assert response.status_code == 403

    @pytest.mark.parametrize("token", ["verify-me-too", "verify", "vérify-me"])
    def test_near_miss_token_forbidden(self, client, token):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": token, "hub.challenge": "123"},
        )
        assert response.status_code == 403

    def test_token_compared_in_constant_time(self, client):
        with patch("lothis.routers.webhook.hmac.compare_digest", wraps=hmac.compare_digest) as compare:
            client.get(
                "/webhook",
                params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1"},
            )

        compare.assert_called_once_with(b"verify-me", b"verify-me")


class TestInbound:
    def test_dispatches_message(self, client, orchestrator):
        response = client.post("/webhook", json=_payload(_text_message("31612345678", "hello", "wamid.1")))

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Accepted", "events": 1}
        orchestrator.handle_inbound_message.assert_called_once_with("31612345678", "hello", "wamid.1")

    def test_dispatches_every_message(self, client, orchestrator):
        client.post(
            "/webhook",
            json=_payload(
                _text_message("U1", "first", "wamid.1"),
                _text_message("U2", "second", "wamid.2"),
            ),
        )

        assert orchestrator.handle_inbound_message.call_args_list == [
            call("U1", "first", "wamid.1"),
            call("U2", "second", "wamid.2"),
        ]

    def test_non_text_message_has_no_text(self, client, orchestrator):
        image = {"from": "U1", "id": "wamid.9", "type": "image", "image": {"id": "media_1"}}

        client.post("/webhook", json=_payload(image))

        orchestrator.handle_inbound_message.assert_called_once_with("U1", None, "wamid.9")

    def test_status_callback_is_ignored(self, client, orchestrator):
        response = client.post(
            "/webhook",
            json=_payload(statuses=[{"id": "wamid.1", "status": "delivered", "recipient_id": "U1"}]),
        )

        assert response.json()["events"] == 0
        orchestrator.handle_inbound_message.assert_not_called()

    def test_invalid_json_is_acknowledged(self, client, orchestrator):
        response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.json()["success"] is False
        orchestrator.handle_inbound_message.assert_not_called()

    def test_non_object_payload(self, client):
        response = client.post("/webhook", json=["a", "b"])
        assert response.json() == {"success": False, "message": "Invalid payload format", "events": 0}

    def test_processing_failure_still_acknowledged(self, client, orchestrator):
        orchestrator.handle_inbound_message.side_effect = RuntimeError("database is locked")

        response = client.post("/webhook", json=_payload(_text_message("U1", "hello", "wamid.1")))

        assert response.status_code == 200
        assert response.json()["success"] is True


class TestProcessEvent:
    def test_swallows_and_logs_exceptions(self):
        orchestrator = Mock()
        orchestrator.handle_inbound_message.side_effect = ValueError("boom")

        process_event(orchestrator, InboundEvent(chat_id="U1", text="hi", delivery_id="wamid.1"))

        orchestrator.handle_inbound_message.assert_called_once_with("U1", "hi", "wamid.1")


class TestIterEvents:
    def test_skips_messages_without_sender(self):
        webhook = WhatsAppWebhook.model_validate(
            _payload({"id": "wamid.1", "type": "text", "text": {"body": "hi"}}, _text_message("U2", "yo", "wamid.2"))
        )

        events = webhook.iter_events()

        assert [event.chat_id for event in events] == ["U2"]

    def test_empty_envelope(self):
        assert WhatsAppWebhook.model_validate({}).iter_events() == []


class TestServiceEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Lothis" in response.text


class TestWebhookToReply:
    def test_redelivered_webhook_replies_once(self, settings, store, ledger, ticker):
        assistant = Mock(spec=AssistantClient)
        assistant.create_conversation.return_value = "thread_abc"
        assistant.start_run.return_value = "run_1"
        assistant.await_run.return_value = RunOutcome.COMPLETED
        assistant.fetch_latest_reply.return_value = "Hello from the assistant"
        transport = Mock(spec=WhatsAppService)
        transport.send_text.return_value = True

        orchestrator = SessionOrchestrator(
            store=store,
            ledger=ledger,
            interpreter=CommandInterpreter(store, assistant, now=ticker),
            assistant=assistant,
            transport=transport,
            now=ticker,
        )
        client = TestClient(create_app(settings, orchestrator=orchestrator))
        payload = _payload(_text_message("U1", "hello", "wamid.1"))

        client.post("/webhook", json=payload)
        client.post("/webhook", json=payload)

        transport.send_text.assert_called_once_with("U1", "Hello from the assistant")
        assistant.append_message.assert_called_once_with("thread_abc", "hello")
