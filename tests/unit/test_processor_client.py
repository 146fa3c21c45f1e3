"""Unit tests for the payment processor client"""

import httpx
import pytest
from urllib.parse import parse_qs
from vedi_payments.domain.exceptions import ExternalServiceError, TransferError
from vedi_payments.infrastructure.clients.processor import ProcessorClient, transfer_idempotency_key


def _client(handler, **kwargs) -> ProcessorClient:
    return ProcessorClient(
        base_url="http://processor.test",
        secret_key="sk_test_123",
        backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_create_payment_intent_sends_form_and_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "pi_1", "client_secret": "pi_1_secret", "status": "requires_payment_method"})

    payload = await _client(handler).create_payment_intent(
        10000, "USD", idempotency_key="intent:abc", metadata={"intent_id": "abc", "venue_id": None}
    )

    assert payload["client_secret"] == "pi_1_secret"
    assert seen["headers"]["Idempotency-Key"] == "intent:abc"
    assert seen["headers"]["Authorization"] == "Bearer sk_test_123"
    assert seen["form"]["amount"] == ["10000"]
    assert seen["form"]["currency"] == ["usd"]
    assert seen["form"]["metadata[intent_id]"] == ["abc"]
    assert "metadata[venue_id]" not in seen["form"]


async def test_create_payment_intent_server_error():
    client = _client(lambda request: httpx.Response(502, json={"error": {"message": "bad gateway"}}))

    with pytest.raises(ExternalServiceError):
        await client.create_payment_intent(10000, "usd", idempotency_key="intent:abc")


async def test_create_transfer_uses_destination_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.headers["Idempotency-Key"]
        return httpx.Response(200, json={"id": "tr_1"})

    transfer_id = await _client(handler).create_transfer("intent_1", "acct_rest", 9341, "usd")

    assert transfer_id == "tr_1"
    assert seen["key"] == transfer_idempotency_key("intent_1", "acct_rest") == "transfer:intent_1:acct_rest"


async def test_create_transfer_rejection_is_transfer_error():
    """Test a 4xx answer is a per-destination rejection"""
    client = _client(lambda request: httpx.Response(400, json={"error": {"message": "No such destination"}}))

    with pytest.raises(TransferError) as exc_info:
        await client.create_transfer("intent_1", "acct_bad", 97, "usd")

    assert "No such destination" in str(exc_info.value)
    assert exc_info.value.context["destination"] == "acct_bad"


async def test_create_transfer_is_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503)

    with pytest.raises(ExternalServiceError):
        await _client(handler, max_read_retries=3).create_transfer("intent_1", "acct_rest", 9341, "usd")

    assert calls["n"] == 1


async def test_retrieve_retries_server_errors():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(500)
        return httpx.Response(200, json={"id": "pi_1", "status": "succeeded"})

    payload = await _client(handler, max_read_retries=3).retrieve_payment_intent("pi_1")

    assert payload["status"] == "succeeded"
    assert calls["n"] == 3


async def test_retrieve_gives_up_after_max_retries():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalServiceError):
        await _client(handler, max_read_retries=2).retrieve_payment_intent("pi_1")

    assert calls["n"] == 3


async def test_retrieve_does_not_retry_client_errors():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, json={"error": {"message": "No such payment_intent"}})

    with pytest.raises(ExternalServiceError):
        await _client(handler, max_read_retries=3).retrieve_payment_intent("pi_missing")

    assert calls["n"] == 1
