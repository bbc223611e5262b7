"""
Error taxonomy for referral coordination.

Every rejected operation raises one of these. The Flask app renders them as:

    {
        "ok": false,
        "error": {
            "code": "invalid_transition",
            "message": "Cannot pay for a rejected referral.",
            "details": {...}
        }
    }
"""

from typing import Any, Dict, Optional


class ReferralError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400
    default_message = "Request could not be completed."

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standard error envelope."""
        return {
            "ok": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(ReferralError):
    """Missing or malformed input (never reaches the repository)."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid input data."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        self.field = field
        super().__init__(message, details)


class PaymentMethodRequired(ReferralError):
    code = "payment_method_required"
    status_code = 400
    default_message = "Please select a payment method."


class InsufficientCredits(ReferralError):
    code = "insufficient_credits"
    status_code = 402
    default_message = "Insufficient credits to complete this payment."


class PaymentFailed(ReferralError):
    code = "payment_failed"
    status_code = 402
    default_message = "The charge did not complete. No payment was taken."


class AuthenticationRequired(ReferralError):
    code = "authentication_required"
    status_code = 401
    default_message = "Authentication required."


class PermissionDenied(ReferralError):
    code = "permission_denied"
    status_code = 403
    default_message = "You do not have access to this resource."


class ReferralNotFound(ReferralError):
    code = "referral_not_found"
    status_code = 404
    default_message = "Referral not found."


class DepartmentNotFound(ReferralError):
    code = "department_not_found"
    status_code = 404
    default_message = "Department is not a receiver of this referral."


class PaymentNotFound(ReferralError):
    code = "payment_not_found"
    status_code = 404
    default_message = "Payment not found."


class NotFound(ReferralError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


class InvalidTransition(ReferralError):
    """Attempted transition is not in the department status table."""

    code = "invalid_transition"
    status_code = 409
    default_message = "This action is not allowed in the current status."


class ConflictError(ReferralError):
    """Stale version: the record changed since it was last read."""

    code = "conflict"
    status_code = 409
    default_message = "This referral was updated by someone else. Please refresh and try again."


class NetworkError(ReferralError):
    """Repository or payment processor unreachable. Retry is user-initiated."""

    code = "network_error"
    status_code = 503
    default_message = "The service is temporarily unreachable. Please try again."
