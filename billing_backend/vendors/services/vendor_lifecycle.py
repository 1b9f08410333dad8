"""
VENDOR INVOICE LIFECYCLE DOMAIN RULES

    submitted_to_admin      -> submitted_to_accounting | rejected_by_admin
    submitted_to_accounting -> paid                    | rejected_by_accountant

Partial payments keep the invoice in submitted_to_accounting.
"""

from billing.services.invoice_lifecycle import InvalidTransitionError, can_transition
from vendors.models import VendorInvoice

Status = VendorInvoice.Status

TERMINAL_STATES = {
    Status.REJECTED_BY_ADMIN,
    Status.REJECTED_BY_ACCOUNTANT,
    Status.PAID,
}

ALLOWED_TRANSITIONS = {
    Status.SUBMITTED_TO_ADMIN: {
        Status.SUBMITTED_TO_ACCOUNTING,
        Status.REJECTED_BY_ADMIN,
    },
    Status.SUBMITTED_TO_ACCOUNTING: {
        Status.SUBMITTED_TO_ACCOUNTING,
        Status.PAID,
        Status.REJECTED_BY_ACCOUNTANT,
    },
}


def validate_transition(*, vendor_invoice, target_status: str):
    if not can_transition(
        transitions=ALLOWED_TRANSITIONS,
        terminal=TERMINAL_STATES,
        from_status=vendor_invoice.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Vendor invoice {vendor_invoice.invoice_number} cannot transition from "
            f"'{vendor_invoice.status}' to '{target_status}'"
        )
