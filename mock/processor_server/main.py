from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from typing import Dict, Optional
from urllib.parse import parse_qsl
import uuid

app = FastAPI(title="Mock Payment Processor", version="1.0.0")

# In-memory state; restart the server to reset
PAYMENT_INTENTS: Dict[str, dict] = {}
TRANSFERS: Dict[str, dict] = {}
IDEMPOTENT_RESPONSES: Dict[str, dict] = {}

REJECTED_PREFIX = "acct_reject"


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


async def _form(request: Request) -> dict:
    return dict(parse_qsl((await request.body()).decode()))


def _metadata(form: dict) -> dict:
    return {key[len("metadata["):-1]: value for key, value in form.items() if key.startswith("metadata[")}


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/v1/payment_intents")
async def create_payment_intent(request: Request, idempotency_key: Optional[str] = Header(None)):
    if idempotency_key and idempotency_key in IDEMPOTENT_RESPONSES:
        return IDEMPOTENT_RESPONSES[idempotency_key]

    form = await _form(request)
    if not form.get("amount", "").isdigit() or int(form["amount"]) <= 0:
        return _error(400, "parameter_invalid_integer", "Invalid amount")

    intent_id = f"pi_{uuid.uuid4().hex[:24]}"
    intent = {
        "id": intent_id,
        "object": "payment_intent",
        "amount": int(form["amount"]),
        "currency": form.get("currency", "usd"),
        "status": "requires_payment_method",
        "client_secret": f"{intent_id}_secret_{uuid.uuid4().hex[:12]}",
        "metadata": _metadata(form),
    }
    PAYMENT_INTENTS[intent_id] = intent
    if idempotency_key:
        IDEMPOTENT_RESPONSES[idempotency_key] = intent
    return intent


@app.get("/v1/payment_intents/{intent_id}")
def retrieve_payment_intent(intent_id: str):
    intent = PAYMENT_INTENTS.get(intent_id)
    if intent is None:
        return _error(404, "resource_missing", f"No such payment_intent: {intent_id}")
    return intent


@app.post("/v1/payment_intents/{intent_id}/confirm")
def confirm_payment_intent(intent_id: str):
    """Stands in for the customer completing payment client-side"""
    intent = PAYMENT_INTENTS.get(intent_id)
    if intent is None:
        return _error(404, "resource_missing", f"No such payment_intent: {intent_id}")
    intent["status"] = "succeeded"
    return intent


@app.post("/v1/transfers")
async def create_transfer(request: Request, idempotency_key: Optional[str] = Header(None)):
    if idempotency_key and idempotency_key in IDEMPOTENT_RESPONSES:
        return IDEMPOTENT_RESPONSES[idempotency_key]

    form = await _form(request)
    destination = form.get("destination", "")
    if not destination or destination.startswith(REJECTED_PREFIX):
        return _error(400, "account_invalid", f"Destination {destination!r} cannot receive transfers")

    transfer = {
        "id": f"tr_{uuid.uuid4().hex[:24]}",
        "object": "transfer",
        "amount": int(form.get("amount", 0)),
        "currency": form.get("currency", "usd"),
        "destination": destination,
        "transfer_group": form.get("transfer_group"),
        "metadata": _metadata(form),
    }
    TRANSFERS[transfer["id"]] = transfer
    if idempotency_key:
        IDEMPOTENT_RESPONSES[idempotency_key] = transfer
    return transfer
