# billing/services/verification_service.py

"""
PAYMENT VERIFIER (ACCOUNTING)

approve / reject / reverse a submitted payment and re-derive the invoice
status from the Balance Calculator in the same atomic unit.

GUARANTEES:
- Invoice row is locked FIRST, then the payment row; the payment state is
  re-read under the lock (no racing verify/reject/reverse on one invoice)
- Verified sum never exceeds the invoice total (approval that would
  overpay is refused)
- Only the targeted payment is mutated; siblings are never touched
- Every decision is appended to the payment's notes, attributed to the actor
- Reversal only within PAYMENT_REVERSAL_WINDOW_HOURS (default 48, inclusive)
  of verification
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.utils import timezone

from billing.models import Invoice, Payment
from billing.services.balance_service import Balance, derive_invoice_status, invoice_balance
from billing.services.exceptions import (
    BillingConflictError,
    BillingNotFoundError,
    BillingValidationError,
)
from billing.services.guards import actor_label, actor_ref, assert_actor_can
from billing.services.invoice_lifecycle import (
    InvalidTransitionError,
    validate_invoice_transition,
    validate_payment_transition,
)
from billing.services.notifications import (
    EVENT_PAYMENT_REJECTED,
    EVENT_PAYMENT_REVERSED,
    EVENT_PAYMENT_VERIFIED,
    notify_after_commit,
)
from billing.services.repository import default_repository
from permissions.roles import CAP_PAYMENT_REVERSE, CAP_PAYMENT_VERIFY

logger = logging.getLogger("payments")

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
VERIFY_ACTIONS = {ACTION_APPROVE, ACTION_REJECT}

VERIFIED_FILTER_VERIFIED = "verified"
VERIFIED_FILTER_REVERSED = "reversed"
VERIFIED_FILTER_ALL = "all"


@dataclass(frozen=True)
class VerificationResult:
    payment: Payment
    invoice: Invoice
    balance: Balance


def _reversal_window_hours() -> int:
    return int(getattr(settings, "BILLING", {}).get("PAYMENT_REVERSAL_WINDOW_HOURS", 48))


# ============================================================
# INTERNAL HELPERS
# ============================================================


def _lock_invoice_and_payment(*, payment_id, repository):
    """
    Must run inside repository.atomic().
    Lock order: invoice, then payment.
    """
    probe = repository.get_payment(payment_id)
    if probe is None:
        raise BillingNotFoundError("Payment not found")

    invoice = repository.get_invoice(probe.invoice_id, for_update=True)
    payment = repository.get_payment(payment_id, for_update=True)
    if invoice is None or payment is None:
        raise BillingNotFoundError("Payment not found")

    return invoice, payment


def _transition_payment(*, payment, target_status: str):
    try:
        validate_payment_transition(payment=payment, target_status=target_status)
    except InvalidTransitionError as exc:
        raise BillingConflictError(
            f"Payment is '{payment.status}' and cannot become '{target_status}'"
        ) from exc
    payment.status = target_status


def _settle_invoice(*, invoice, repository, today) -> Balance:
    """
    Re-derive invoice status (pending / paid) and paid_date from the
    verified sum. The only place a verification decides invoice status.
    """
    payments = repository.list_invoice_payments(invoice.pk)
    balance = invoice_balance(invoice, payments, today=today)
    target = derive_invoice_status(balance)

    try:
        validate_invoice_transition(invoice=invoice, target_status=target)
    except InvalidTransitionError as exc:
        raise BillingConflictError(str(exc)) from exc

    invoice.status = target
    if target == Invoice.Status.PAID:
        invoice.paid_date = invoice.paid_date or today
    else:
        invoice.paid_date = None

    repository.save_invoice(invoice, fields=["status", "paid_date"])
    return balance


def _event_payload(payment, invoice) -> dict:
    return {
        "payment_id": str(payment.pk),
        "invoice_id": str(invoice.pk),
        "organization_id": str(invoice.organization_id),
        "payment_status": payment.status,
        "invoice_status": invoice.status,
    }


# ============================================================
# APPROVE
# ============================================================


def approve_payment(
    *,
    payment_id,
    notes: str = "",
    actor,
    repository=None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_VERIFY, action="verify payments")
    now = now or timezone.now()

    with repository.atomic():
        invoice, payment = _lock_invoice_and_payment(payment_id=payment_id, repository=repository)

        if payment.status != Payment.Status.PENDING_VERIFICATION:
            raise BillingConflictError(
                f"Payment is '{payment.status}'; only payments pending verification can be approved"
            )

        before = invoice_balance(invoice, repository.list_invoice_payments(invoice.pk))
        if before.verified_sum + payment.amount > before.total:
            logger.warning(
                "Approval refused: would overpay invoice",
                extra={
                    "payment_id": str(payment.pk),
                    "invoice_id": str(invoice.pk),
                    "verified_sum": str(before.verified_sum),
                    "amount": str(payment.amount),
                },
            )
            raise BillingValidationError(
                f"Approving {payment.amount} would exceed the invoice total "
                f"(verified {before.verified_sum} of {before.total})"
            )

        _transition_payment(payment=payment, target_status=Payment.Status.VERIFIED)
        payment.verified_at = now
        payment.verified_by = actor_ref(actor)
        payment.append_note(f"Verified by {actor_label(actor)}: {(notes or '').strip() or 'Payment approved'}")
        repository.save_payment(payment, fields=["status", "verified_at", "verified_by", "notes"])

        balance = _settle_invoice(invoice=invoice, repository=repository, today=timezone.localdate(now))

        notify_after_commit(
            repository=repository,
            event=EVENT_PAYMENT_VERIFIED,
            payload=_event_payload(payment, invoice),
        )

    logger.info(
        "Payment verified",
        extra={
            "payment_id": str(payment.pk),
            "invoice_id": str(invoice.pk),
            "invoice_status": invoice.status,
            "outstanding": str(balance.outstanding),
        },
    )
    return VerificationResult(payment=payment, invoice=invoice, balance=balance)


# ============================================================
# REJECT
# ============================================================


def reject_payment(
    *,
    payment_id,
    notes: str,
    actor,
    repository=None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_VERIFY, action="reject payments")
    now = now or timezone.now()

    notes = (notes or "").strip()
    if not notes:
        raise BillingValidationError("Notes are required when rejecting a payment")

    with repository.atomic():
        invoice, payment = _lock_invoice_and_payment(payment_id=payment_id, repository=repository)

        if payment.status != Payment.Status.PENDING_VERIFICATION:
            raise BillingConflictError(
                f"Payment is '{payment.status}'; only payments pending verification can be rejected"
            )

        _transition_payment(payment=payment, target_status=Payment.Status.REJECTED)
        payment.rejected_at = now
        payment.append_note(f"Rejected by {actor_label(actor)}: {notes}")
        repository.save_payment(payment, fields=["status", "rejected_at", "notes"])

        balance = _settle_invoice(invoice=invoice, repository=repository, today=timezone.localdate(now))

        notify_after_commit(
            repository=repository,
            event=EVENT_PAYMENT_REJECTED,
            payload=_event_payload(payment, invoice),
        )

    logger.info(
        "Payment rejected",
        extra={"payment_id": str(payment.pk), "invoice_id": str(invoice.pk)},
    )
    return VerificationResult(payment=payment, invoice=invoice, balance=balance)


# ============================================================
# REVERSE
# ============================================================


def reverse_payment(
    *,
    payment_id,
    reason: str,
    actor,
    repository=None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_REVERSE, action="reverse payments")
    now = now or timezone.now()

    reason = (reason or "").strip()
    if not reason:
        raise BillingValidationError("A reason is required to reverse a payment")

    with repository.atomic():
        invoice, payment = _lock_invoice_and_payment(payment_id=payment_id, repository=repository)

        if payment.status != Payment.Status.VERIFIED:
            raise BillingConflictError(
                f"Payment is '{payment.status}'; only verified payments can be reversed"
            )

        window = _reversal_window_hours()
        hours_since = (now - payment.verified_at).total_seconds() / 3600
        if hours_since > window:
            logger.warning(
                "Reversal refused: window expired",
                extra={"payment_id": str(payment.pk), "hours_since_verification": round(hours_since, 2)},
            )
            raise BillingValidationError(
                f"Payment reversal window expired ({window} hours after verification)"
            )

        _transition_payment(payment=payment, target_status=Payment.Status.REVERSED)
        payment.reversed_at = now
        payment.reversed_by = actor_ref(actor)
        payment.append_note(f"Reversed by {actor_label(actor)}: {reason}")
        repository.save_payment(payment, fields=["status", "reversed_at", "reversed_by", "notes"])

        balance = _settle_invoice(invoice=invoice, repository=repository, today=timezone.localdate(now))

        notify_after_commit(
            repository=repository,
            event=EVENT_PAYMENT_REVERSED,
            payload=_event_payload(payment, invoice),
        )

    logger.info(
        "Payment reversed",
        extra={
            "payment_id": str(payment.pk),
            "invoice_id": str(invoice.pk),
            "invoice_status": invoice.status,
        },
    )
    return VerificationResult(payment=payment, invoice=invoice, balance=balance)


# ============================================================
# DISPATCH + QUEUES
# ============================================================


def verify_payment(
    *,
    payment_id,
    action: str,
    notes: str = "",
    actor,
    repository=None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    action = (action or "").strip().lower()
    if action not in VERIFY_ACTIONS:
        raise BillingValidationError("Action must be 'approve' or 'reject'")

    if action == ACTION_APPROVE:
        return approve_payment(
            payment_id=payment_id, notes=notes, actor=actor, repository=repository, now=now
        )
    return reject_payment(
        payment_id=payment_id, notes=notes, actor=actor, repository=repository, now=now
    )


def pending_verifications(*, actor, repository=None) -> list[Payment]:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_VERIFY, action="view the verification queue")
    return repository.payments_with_status({Payment.Status.PENDING_VERIFICATION})


def verified_payments(*, actor, status: str = VERIFIED_FILTER_ALL, repository=None) -> list[Payment]:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_VERIFY, action="view verified payments")

    statuses = {
        VERIFIED_FILTER_VERIFIED: {Payment.Status.VERIFIED},
        VERIFIED_FILTER_REVERSED: {Payment.Status.REVERSED},
        VERIFIED_FILTER_ALL: {Payment.Status.VERIFIED, Payment.Status.REVERSED},
    }.get((status or VERIFIED_FILTER_ALL).strip().lower())

    if statuses is None:
        raise BillingValidationError("status must be one of: verified, reversed, all")

    return repository.payments_with_status(statuses)
