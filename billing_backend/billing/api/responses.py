# billing/api/responses.py

"""
API RESPONSE ENVELOPE

    success: {"success": true,  "data": ...}
    failure: {"success": false, "error": {"code", "message"[, "details"]}}

`BillingAPIView.handle_exception` is the single place where domain errors,
DRF errors and unexpected failures become HTTP responses.
"""

import logging

from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.services.exceptions import BillingError
from permissions.roles import HasCapability

logger = logging.getLogger("billing")

_CODES_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "AUTHENTICATION_REQUIRED",
    status.HTTP_403_FORBIDDEN: "INSUFFICIENT_PERMISSIONS",
    status.HTTP_404_NOT_FOUND: "RESOURCE_NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
}


def success_response(data, *, http_status: int = status.HTTP_200_OK):
    return Response({"success": True, "data": data}, status=http_status)


def error_response(*, code: str, message: str, http_status: int, details=None):
    """
    Canonical API error response.
    """
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return Response({"success": False, "error": error}, status=http_status)


class BillingAPIView(GenericAPIView):
    """
    Base view: authenticated + capability-gated, envelope on every error.

    Subclasses set `required_capability` or `required_capabilities`
    ({"GET": ..., "POST": ...}).
    """

    permission_classes = [IsAuthenticated, HasCapability]

    def handle_exception(self, exc):
        if isinstance(exc, BillingError):
            return error_response(
                code=exc.code,
                message=exc.message,
                http_status=exc.http_status,
                details=exc.details,
            )

        try:
            response = super().handle_exception(exc)
        except Exception:
            logger.exception(
                "Unhandled error in billing API",
                extra={"view": self.__class__.__name__},
            )
            return error_response(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
                http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        code = _CODES_BY_STATUS.get(response.status_code)
        if code is None:
            code = str(getattr(exc, "default_code", "error")).upper()

        if response.status_code == status.HTTP_400_BAD_REQUEST:
            message, details = "Invalid request data", response.data
        else:
            detail = response.data.get("detail") if isinstance(response.data, dict) else None
            message, details = str(detail or getattr(exc, "detail", exc)), None

        response.data = {"success": False, "error": {"code": code, "message": message}}
        if details is not None:
            response.data["error"]["details"] = details
        return response


