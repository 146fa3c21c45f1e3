"""
E2E tests for the processor client against the mock processor server.

The mock server runs in-process through httpx.ASGITransport, so these tests
exercise real HTTP encoding, idempotency keys and error payloads without
the network.
"""

import httpx
import pytest
from mock.processor_server.main import app as processor_app
from vedi_payments.domain.exceptions import ExternalServiceError, TransferError
from vedi_payments.infrastructure.clients.processor import ProcessorClient


@pytest.fixture
def live_processor() -> ProcessorClient:
    return ProcessorClient(
        base_url="http://processor.test",
        secret_key="sk_test_e2e",
        backoff_base=0,
        transport=httpx.ASGITransport(app=processor_app),
    )


async def _confirm(processor_intent_id: str) -> None:
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=processor_app), base_url="http://processor.test") as client:
        response = await client.post(f"/v1/payment_intents/{processor_intent_id}/confirm")
        response.raise_for_status()


@pytest.mark.integration
async def test_payment_intent_lifecycle(live_processor: ProcessorClient):
    created = await live_processor.create_payment_intent(
        10000, "usd", idempotency_key="intent:e2e-1", metadata={"intent_id": "e2e-1", "restaurant_id": "rest_1"}
    )
    assert created["client_secret"].startswith(created["id"])
    assert created["metadata"]["restaurant_id"] == "rest_1"

    before = await live_processor.retrieve_payment_intent(created["id"])
    assert before["status"] == "requires_payment_method"

    await _confirm(created["id"])
    after = await live_processor.retrieve_payment_intent(created["id"])
    assert after["status"] == "succeeded"


@pytest.mark.integration
async def test_payment_intent_idempotency(live_processor: ProcessorClient):
    first = await live_processor.create_payment_intent(5000, "usd", idempotency_key="intent:e2e-2")
    second = await live_processor.create_payment_intent(5000, "usd", idempotency_key="intent:e2e-2")

    assert first["id"] == second["id"]


@pytest.mark.integration
async def test_transfer_redelivery_returns_same_transfer(live_processor: ProcessorClient):
    first = await live_processor.create_transfer("e2e-3", "acct_rest_1", 9341, "usd")
    second = await live_processor.create_transfer("e2e-3", "acct_rest_1", 9341, "usd")
    other = await live_processor.create_transfer("e2e-3", "acct_venue_1", 97, "usd")

    assert first == second
    assert other != first


@pytest.mark.integration
async def test_rejected_destination(live_processor: ProcessorClient):
    with pytest.raises(TransferError):
        await live_processor.create_transfer("e2e-4", "acct_reject_9", 97, "usd")


@pytest.mark.integration
async def test_unknown_payment_intent(live_processor: ProcessorClient):
    with pytest.raises(ExternalServiceError):
        await live_processor.retrieve_payment_intent("pi_does_not_exist")
