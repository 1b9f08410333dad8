# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
# Resolved by authentication; every billing call carries one.
ROLE_ADMIN = "admin"
ROLE_ACCOUNTANT = "accountant"
ROLE_ORGANIZATION = "organization"
ROLE_VENDOR = "vendor"
ROLE_INSTRUCTOR = "instructor"
ROLE_HR = "hr"
ROLE_SYSADMIN = "sysadmin"


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_BILLING_READINESS_VIEW = "billing.readiness_view"
CAP_INVOICE_VIEW = "billing.invoice_view"
CAP_INVOICE_CREATE = "billing.invoice_create"
CAP_INVOICE_MANAGE = "billing.invoice_manage"  # post / update / void / cancel

CAP_PAYMENT_SUBMIT = "billing.payment_submit"
CAP_PAYMENT_VERIFY = "billing.payment_verify"  # approve / reject
CAP_PAYMENT_REVERSE = "billing.payment_reverse"

CAP_VENDOR_INVOICE_SUBMIT = "vendor.invoice_submit"
CAP_VENDOR_INVOICE_VIEW = "vendor.invoice_view"
CAP_VENDOR_ADMIN_REVIEW = "vendor.admin_review"
CAP_VENDOR_ACCOUNTING = "vendor.accounting"  # record payments / reject

ALL_CAPABILITIES = {
    CAP_BILLING_READINESS_VIEW,
    CAP_INVOICE_VIEW,
    CAP_INVOICE_CREATE,
    CAP_INVOICE_MANAGE,
    CAP_PAYMENT_SUBMIT,
    CAP_PAYMENT_VERIFY,
    CAP_PAYMENT_REVERSE,
    CAP_VENDOR_INVOICE_SUBMIT,
    CAP_VENDOR_INVOICE_VIEW,
    CAP_VENDOR_ADMIN_REVIEW,
    CAP_VENDOR_ACCOUNTING,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_ACCOUNTANT: {
        CAP_BILLING_READINESS_VIEW,
        CAP_INVOICE_VIEW,
        CAP_INVOICE_CREATE,
        CAP_INVOICE_MANAGE,
        CAP_PAYMENT_VERIFY,
        CAP_PAYMENT_REVERSE,
        CAP_VENDOR_INVOICE_VIEW,
        CAP_VENDOR_ACCOUNTING,
    },
    ROLE_ORGANIZATION: {
        # scoped to the user's own organization by the services
        CAP_INVOICE_VIEW,
        CAP_PAYMENT_SUBMIT,
    },
    ROLE_VENDOR: {
        CAP_VENDOR_INVOICE_SUBMIT,
        CAP_VENDOR_INVOICE_VIEW,
    },
    ROLE_SYSADMIN: {
        CAP_BILLING_READINESS_VIEW,
        CAP_INVOICE_VIEW,
        CAP_VENDOR_INVOICE_VIEW,
    },
    ROLE_INSTRUCTOR: set(),
    ROLE_HR: set(),
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def capabilities_for(user) -> set[str]:
    if not user or not getattr(user, "is_authenticated", False):
        return set()
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def user_has_capability(user, capability: str) -> bool:
    return capability in capabilities_for(user)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_PAYMENT_VERIFY

    Views with several methods may instead declare
    `required_capabilities = {"GET": ..., "POST": ...}`.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        by_method = getattr(view, "required_capabilities", None) or {}
        required = by_method.get(request.method) or getattr(
            view, "required_capability", None
        )
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return user_has_capability(user, required)

