"""Domain-specific exceptions"""

from typing import Any, Dict


class DomainException(Exception):
    """Base exception for domain layer.

    ``context`` carries identifiers (restaurant_id, venue_id, intent_id,
    operation) for logs; ``public_message`` is what callers get to see.
    """

    public_message = "Request could not be processed"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context: Dict[str, Any] = context


class ValidationError(DomainException):
    """Input is malformed or out of range"""

    public_message = "Invalid request"


class IntentStateError(ValidationError):
    """Illegal payment intent lifecycle transition"""

    public_message = "Payment is not in a state that allows this operation"


class NotFoundError(DomainException):
    """Referenced restaurant, venue or intent does not exist"""

    public_message = "Resource not found"


class SplitIntegrityError(DomainException):
    """Split parts do not reconstruct the gross amount.

    Signals a configuration or rounding bug, never bad user input.
    """

    public_message = "Payment could not be created"


class TransferError(DomainException):
    """Processor rejected a payout to one destination"""

    public_message = "Transfer failed"


class PermissionDeniedError(DomainException):
    """Caller lacks rights over the referenced restaurant or venue"""

    public_message = "Access denied"


class ExternalServiceError(DomainException):
    """Payment processor or store unavailable"""

    public_message = "Payment service unavailable"
