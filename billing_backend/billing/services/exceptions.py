# billing/services/exceptions.py

"""
BILLING SERVICE ERRORS

Centralized domain errors for billing and vendor payables.

Each error carries the machine-readable `code` and the HTTP status the API
layer answers with, plus optional itemized `details` (e.g. the readiness
check's list of failed rules).
"""

from rest_framework import status


class BillingError(Exception):
    """Base exception for all billing service failures."""

    code = "INTERNAL_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", *, details=None):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""
        self.details = details


class BillingValidationError(BillingError):
    """Bad input or a business rule violation."""

    code = "VALIDATION_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST


class BillingNotFoundError(BillingError):
    """Requested resource does not exist (or is not visible to the actor)."""

    code = "RESOURCE_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class BillingPermissionError(BillingError):
    """Actor role is not allowed to perform the operation."""

    code = "INSUFFICIENT_PERMISSIONS"
    http_status = status.HTTP_403_FORBIDDEN


class BillingConflictError(BillingError):
    """State changed underneath the caller; refresh and retry."""

    code = "CONFLICT"
    http_status = status.HTTP_409_CONFLICT
