"""Dependency injection for FastAPI endpoints"""

from fastapi import Header, HTTPException, Request

from vedi_payments.domain.models import Caller
from vedi_payments.infrastructure.clients.processor import ProcessorClient

CALLER_ROLES = ("operator", "restaurant", "venue", "customer")


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_processor_client() -> ProcessorClient:
    """Provide payment processor client instance"""
    return ProcessorClient()


def get_caller(
    x_caller_id: str = Header(..., min_length=1, description="Authenticated caller identifier"),
    x_caller_role: str = Header(..., description="Caller role asserted by the gateway"),
) -> Caller:
    """Caller identity forwarded by the upstream auth gateway"""
    role = x_caller_role.lower()
    if role not in CALLER_ROLES:
        raise HTTPException(status_code=403, detail="Unknown caller role")
    return Caller(caller_id=x_caller_id, role=role)
