"""
Domain exceptions.

WHAT: Errors raised by the orchestrator and services
WHY: The HTTP layer maps them to responses without knowing orchestrator internals
HOW: BusinessException carries an error code, details, and the HTTP status it maps to;
     QuotaExhaustedError and AgentNotEnabledError stay internal
"""

from typing import Any, Dict, List, Optional


class BusinessException(Exception):
    """A request broke a negotiation rule."""

    status_code = 400

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class NegotiationNotFoundException(BusinessException):
    status_code = 404

    def __init__(self, negotiation_id: str):
        super().__init__(
            message=f"Negotiation not found: {negotiation_id}",
            code="NEGOTIATION_NOT_FOUND",
            details={"negotiation_id": negotiation_id},
        )


class NegotiationNotActiveException(BusinessException):
    """The negotiation already ended in accepted or rejected."""

    status_code = 409

    def __init__(self, negotiation_id: str, current_status: str):
        super().__init__(
            message=f"Negotiation {negotiation_id} is {current_status} and accepts no further moves",
            code="NEGOTIATION_NOT_ACTIVE",
            details={"negotiation_id": negotiation_id, "current_status": current_status},
        )


class OfferNotPendingException(BusinessException):
    """Caller tried to answer, but the pending offer is not addressed to them."""

    status_code = 409

    def __init__(self, negotiation_id: str, user_id: str):
        super().__init__(
            message=f"No pending offer addressed to {user_id} in negotiation {negotiation_id}",
            code="OFFER_NOT_PENDING",
            details={"negotiation_id": negotiation_id, "user_id": user_id},
        )


class NotAParticipantException(BusinessException):
    status_code = 403

    def __init__(self, negotiation_id: str, user_id: str):
        super().__init__(
            message=f"User {user_id} is not a party to negotiation {negotiation_id}",
            code="NOT_A_PARTICIPANT",
            details={"negotiation_id": negotiation_id, "user_id": user_id},
        )


class ValidationException(BusinessException):

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None,
        )


class QuotaExhaustedError(Exception):
    """The request governor's lifetime budget is spent."""


class AgentNotEnabledError(Exception):
    """Decision requested for a side whose agent is not enabled."""
