"""Payment processor HTTP client (Stripe-compatible REST API)"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from vedi_payments.config import settings
from vedi_payments.domain.exceptions import ExternalServiceError, TransferError
from vedi_payments.infrastructure.observability.metrics import (
    processor_failure_counter,
    processor_latency_histogram,
)

logger = logging.getLogger(__name__)


def transfer_idempotency_key(intent_id: str, destination_account_id: str) -> str:
    """One payout per (intent, destination), however often the event is redelivered"""
    return f"transfer:{intent_id}:{destination_account_id}"


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
        return error.get("message") or error.get("code") or f"HTTP {response.status_code}"
    except ValueError:
        return f"HTTP {response.status_code}"


def _flatten_metadata(metadata: Dict[str, Any]) -> Dict[str, str]:
    """Form-encode metadata the way the processor expects: metadata[key]=value"""
    return {f"metadata[{key}]": str(value) for key, value in metadata.items() if value is not None}


class ProcessorClient:
    """Client for the external payment processor"""

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: float | None = None,
        max_read_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.processor_api_base
        self.secret_key = secret_key or settings.processor_secret_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_read_retries = settings.read_max_retries if max_read_retries is None else max_read_retries
        self.backoff_base = settings.read_backoff_base if backoff_base is None else backoff_base
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            transport=self.transport,
        )

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create the charge the customer will confirm client-side.

        Written once, never retried here; the idempotency key lets the
        caller repeat the whole request safely.

        Returns:
            Processor intent payload (``id``, ``client_secret``, ``status``)

        Raises:
            ExternalServiceError: On timeout, network or HTTP errors
        """
        data = {
            "amount": str(amount_cents),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
            **_flatten_metadata(metadata or {}),
        }

        async with self._client() as client:
            try:
                with processor_latency_histogram.labels(operation="create_payment_intent").time():
                    response = await client.post(
                        "/v1/payment_intents",
                        data=data,
                        headers={"Idempotency-Key": idempotency_key},
                    )
                response.raise_for_status()
                payload = response.json()
                if "id" not in payload or "client_secret" not in payload:
                    raise ValueError("missing id or client_secret")
                return payload

            except httpx.TimeoutException as e:
                processor_failure_counter.labels(operation="create_payment_intent").inc()
                raise ExternalServiceError(
                    f"Processor timeout after {self.timeout}s", operation="create_payment_intent"
                ) from e
            except httpx.HTTPStatusError as e:
                processor_failure_counter.labels(operation="create_payment_intent").inc()
                raise ExternalServiceError(
                    f"Processor error {e.response.status_code}: {_error_message(e.response)}",
                    operation="create_payment_intent",
                ) from e
            except httpx.RequestError as e:
                processor_failure_counter.labels(operation="create_payment_intent").inc()
                raise ExternalServiceError(
                    f"Processor unreachable: {e}", operation="create_payment_intent"
                ) from e
            except ValueError as e:
                processor_failure_counter.labels(operation="create_payment_intent").inc()
                raise ExternalServiceError(
                    f"Invalid payment intent data from processor: {e}", operation="create_payment_intent"
                ) from e

    async def create_transfer(
        self,
        intent_id: str,
        destination_account_id: str,
        amount_cents: int,
        currency: str,
    ) -> str:
        """
        Pay part of a settled charge out to one connected account.

        Returns:
            Processor transfer id

        Raises:
            TransferError: Processor rejected this destination (4xx)
            ExternalServiceError: Timeout, network or 5xx; outcome unknown
        """
        idempotency_key = transfer_idempotency_key(intent_id, destination_account_id)
        data = {
            "amount": str(amount_cents),
            "currency": currency.lower(),
            "destination": destination_account_id,
            "transfer_group": intent_id,
            **_flatten_metadata({"intent_id": intent_id}),
        }
        context = {"intent_id": intent_id, "destination": destination_account_id, "operation": "create_transfer"}

        async with self._client() as client:
            try:
                with processor_latency_histogram.labels(operation="create_transfer").time():
                    response = await client.post(
                        "/v1/transfers",
                        data=data,
                        headers={"Idempotency-Key": idempotency_key},
                    )
                response.raise_for_status()
                return response.json()["id"]

            except httpx.TimeoutException as e:
                processor_failure_counter.labels(operation="create_transfer").inc()
                raise ExternalServiceError(f"Processor timeout after {self.timeout}s", **context) from e
            except httpx.HTTPStatusError as e:
                processor_failure_counter.labels(operation="create_transfer").inc()
                message = _error_message(e.response)
                if e.response.status_code < 500:
                    raise TransferError(message, status_code=e.response.status_code, **context) from e
                raise ExternalServiceError(f"Processor error {e.response.status_code}: {message}", **context) from e
            except httpx.RequestError as e:
                processor_failure_counter.labels(operation="create_transfer").inc()
                raise ExternalServiceError(f"Processor unreachable: {e}", **context) from e
            except (KeyError, ValueError) as e:
                processor_failure_counter.labels(operation="create_transfer").inc()
                raise ExternalServiceError(f"Invalid transfer data from processor: {e}", **context) from e

    async def retrieve_payment_intent(self, processor_intent_id: str) -> Dict[str, Any]:
        """
        Fetch a processor intent (used to double-check an inbound success event).

        Retry strategy (reads only):
        - Exponential backoff: base, 2*base, 4*base...
        - Retries on timeouts, network failures and 5xx errors
        - 4xx answers are final

        Raises:
            ExternalServiceError: After the last failed attempt
        """
        attempt = 0
        async with self._client() as client:
            while True:
                try:
                    with processor_latency_histogram.labels(operation="retrieve_payment_intent").time():
                        response = await client.get(f"/v1/payment_intents/{processor_intent_id}")
                    response.raise_for_status()
                    return response.json()

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    processor_failure_counter.labels(operation="retrieve_payment_intent").inc()

                    retryable = not isinstance(e, httpx.HTTPStatusError) or e.response.status_code >= 500
                    if not retryable or attempt > self.max_read_retries:
                        raise ExternalServiceError(
                            f"Could not retrieve payment intent: {e}",
                            processor_intent_id=processor_intent_id,
                            operation="retrieve_payment_intent",
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logger.warning(
                        "Retrying processor read",
                        extra={"processor_intent_id": processor_intent_id, "attempt": attempt, "backoff": backoff},
                    )
                    await asyncio.sleep(backoff)
