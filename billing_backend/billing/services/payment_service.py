# billing/services/payment_service.py

"""
PAYMENT PROCESSOR (ORGANIZATION SUBMISSION)

An organization claims it has paid (part of) an invoice. The claim is
recorded as a `pending_verification` payment; only accounting can turn it
into money counted against the invoice.

RULES:
- amount > 0, payment_method required
- amount <= outstanding, where outstanding = total - verified
  (payments still awaiting verification do NOT reduce the cap)
- paid / void / cancelled invoices accept no further payments
- payment insert and invoice -> payment_submitted are one atomic unit,
  taken under the invoice row lock
- `is_full_payment` is informational only; it never changes state
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.utils import timezone

from billing.models import Invoice, Payment
from billing.services.balance_service import invoice_balance, money
from billing.services.exceptions import BillingNotFoundError, BillingValidationError
from billing.services.guards import actor_ref, actor_sees_invoice, assert_actor_can
from billing.services.invoice_lifecycle import (
    InvalidTransitionError,
    validate_invoice_transition,
)
from billing.services.notifications import EVENT_PAYMENT_SUBMITTED, notify_after_commit
from billing.services.repository import default_repository
from permissions.roles import CAP_INVOICE_VIEW, CAP_PAYMENT_SUBMIT

logger = logging.getLogger("payments")


@dataclass(frozen=True)
class SubmissionResult:
    payment: Payment
    invoice: Invoice
    remaining_balance: Decimal
    is_full_payment: bool


def _parse_amount(amount) -> Decimal:
    try:
        amt = money(amount)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise BillingValidationError("Amount must be a valid number") from exc

    if not amt.is_finite():
        raise BillingValidationError("Amount must be a valid number")

    if amt <= Decimal("0.00"):
        raise BillingValidationError("Amount must be greater than 0")
    return amt


def submit_payment(
    *,
    invoice_id,
    amount,
    payment_method: str,
    reference_number: str = "",
    payment_date: Optional[date] = None,
    notes: str = "",
    actor,
    repository=None,
) -> SubmissionResult:
    """
    FLOW:
    1) Validate input (amount, method)
    2) Atomic: lock invoice -> scope to actor's organization -> load payments
       -> balance -> guards -> insert payment -> invoice payment_submitted
    """
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_PAYMENT_SUBMIT, action="submit payments")

    amt = _parse_amount(amount)

    method = (payment_method or "").strip().lower()
    if not method:
        raise BillingValidationError("Payment method is required")

    logger.info(
        "Payment submission received",
        extra={"invoice_id": str(invoice_id), "amount": str(amt), "payment_method": method},
    )

    with repository.atomic():
        invoice = repository.get_invoice(invoice_id, for_update=True)
        if invoice is None or not actor_sees_invoice(actor, invoice):
            raise BillingNotFoundError("Invoice not found")

        if invoice.status == Invoice.Status.PAID:
            raise BillingValidationError("Invoice is already paid")
        if invoice.status in (Invoice.Status.VOID, Invoice.Status.CANCELLED):
            raise BillingValidationError(f"Invoice is {invoice.status} and cannot accept payments")

        payments = repository.list_invoice_payments(invoice.pk)
        balance = invoice_balance(invoice, payments)

        if amt > balance.outstanding:
            logger.warning(
                "Payment submission exceeds outstanding balance",
                extra={
                    "invoice_id": str(invoice.pk),
                    "amount": str(amt),
                    "outstanding": str(balance.outstanding),
                },
            )
            raise BillingValidationError(
                f"Payment amount {amt} exceeds outstanding balance {balance.outstanding}"
            )

        try:
            validate_invoice_transition(
                invoice=invoice, target_status=Invoice.Status.PAYMENT_SUBMITTED
            )
        except InvalidTransitionError as exc:
            raise BillingValidationError(str(exc)) from exc

        payment = repository.create_payment(
            invoice=invoice,
            amount=amt,
            payment_method=method,
            reference_number=(reference_number or "").strip(),
            payment_date=payment_date or timezone.localdate(),
            notes=(notes or "").strip(),
            status=Payment.Status.PENDING_VERIFICATION,
            submitted_by=actor_ref(actor),
            submitted_at=timezone.now(),
        )

        invoice.status = Invoice.Status.PAYMENT_SUBMITTED
        repository.save_invoice(invoice, fields=["status"])

        notify_after_commit(
            repository=repository,
            event=EVENT_PAYMENT_SUBMITTED,
            payload={
                "payment_id": str(payment.pk),
                "invoice_id": str(invoice.pk),
                "amount": str(amt),
            },
        )

    remaining = max(Decimal("0.00"), balance.outstanding - amt)
    is_full = balance.verified_sum + balance.pending_sum + amt >= balance.total

    logger.info(
        "Payment submitted for verification",
        extra={
            "payment_id": str(payment.pk),
            "invoice_id": str(invoice.pk),
            "remaining_balance": str(remaining),
        },
    )

    return SubmissionResult(
        payment=payment,
        invoice=invoice,
        remaining_balance=remaining,
        is_full_payment=is_full,
    )


def payment_history(*, invoice_id, actor, repository=None) -> list[Payment]:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_VIEW, action="view payments")

    invoice = repository.get_invoice(invoice_id)
    if invoice is None or not actor_sees_invoice(actor, invoice):
        raise BillingNotFoundError("Invoice not found")

    return repository.list_invoice_payments(invoice.pk)
