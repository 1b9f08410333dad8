"""
INVOICE & PAYMENT LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status transitions
for Invoice and Payment entities.

DESIGN PRINCIPLES:
- No database writes
- No side effects
- Single source of truth
"""

from billing.models import Invoice, Payment

# ============================================================
# DOMAIN ERRORS
# ============================================================


class LifecycleError(Exception):
    pass


class InvalidTransitionError(LifecycleError):
    pass


# ============================================================
# INVOICE STATES
# ============================================================

INVOICE_TERMINAL_STATES = {
    Invoice.Status.VOID,
    Invoice.Status.CANCELLED,
}

# Self-transitions are listed explicitly: re-deriving a settled status
# after a verification may legitimately land on the current one.
INVOICE_TRANSITIONS = {
    Invoice.Status.PENDING: {
        Invoice.Status.PENDING,
        Invoice.Status.PAYMENT_SUBMITTED,
        Invoice.Status.PAID,
        Invoice.Status.VOID,
        Invoice.Status.CANCELLED,
    },
    Invoice.Status.PAYMENT_SUBMITTED: {
        Invoice.Status.PAYMENT_SUBMITTED,
        Invoice.Status.PENDING,
        Invoice.Status.PAID,
        Invoice.Status.VOID,
        Invoice.Status.CANCELLED,
    },
    Invoice.Status.PAID: {
        Invoice.Status.PAID,
        Invoice.Status.PENDING,  # reversal
    },
}

# ============================================================
# PAYMENT STATES
# ============================================================

PAYMENT_TERMINAL_STATES = {
    Payment.Status.REJECTED,
    Payment.Status.REVERSED,
}

PAYMENT_TRANSITIONS = {
    Payment.Status.PENDING_VERIFICATION: {
        Payment.Status.VERIFIED,
        Payment.Status.REJECTED,
    },
    Payment.Status.VERIFIED: {
        Payment.Status.REVERSED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, transitions: dict, terminal: set, from_status: str, to_status: str) -> bool:
    if from_status in terminal:
        return False

    return to_status in transitions.get(from_status, set())


def validate_invoice_transition(*, invoice, target_status: str):
    if not can_transition(
        transitions=INVOICE_TRANSITIONS,
        terminal=INVOICE_TERMINAL_STATES,
        from_status=invoice.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Invoice {invoice.invoice_number} cannot transition from "
            f"'{invoice.status}' to '{target_status}'"
        )


def validate_payment_transition(*, payment, target_status: str):
    if not can_transition(
        transitions=PAYMENT_TRANSITIONS,
        terminal=PAYMENT_TERMINAL_STATES,
        from_status=payment.status,
        to_status=target_status,
    ):
        raise InvalidTransitionError(
            f"Payment {payment.id} cannot transition from "
            f"'{payment.status}' to '{target_status}'"
        )
