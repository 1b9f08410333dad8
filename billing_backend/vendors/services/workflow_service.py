# vendors/services/workflow_service.py

"""
VENDOR INVOICE WORKFLOW (DOMAIN-CONTROLLED)

vendor submits -> admin approves/rejects -> accounting pays (one or more
payments) or rejects.

GUARANTEES:
- Every transition is one atomic unit under the vendor invoice row lock,
  re-checking the live status before writing
- Σ processed payments <= total; status becomes paid exactly when the
  processed sum reaches the total (Balance Calculator decides)
- Rejections require notes
- Rejected or paid vendor invoices are never mutated again
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import IntegrityError
from django.utils import timezone

from billing.services.balance_service import Balance, money, vendor_invoice_balance
from billing.services.exceptions import (
    BillingConflictError,
    BillingNotFoundError,
    BillingPermissionError,
    BillingValidationError,
)
from billing.services.guards import actor_label, actor_ref, assert_actor_can
from billing.services.invoice_lifecycle import InvalidTransitionError
from billing.services.notifications import (
    EVENT_VENDOR_INVOICE_APPROVED,
    EVENT_VENDOR_INVOICE_REJECTED,
    EVENT_VENDOR_INVOICE_SUBMITTED,
    EVENT_VENDOR_PAYMENT_RECORDED,
    notify_after_commit,
)
from permissions.roles import (
    CAP_VENDOR_ACCOUNTING,
    CAP_VENDOR_ADMIN_REVIEW,
    CAP_VENDOR_INVOICE_SUBMIT,
    CAP_VENDOR_INVOICE_VIEW,
    ROLE_VENDOR,
    get_user_role,
)
from vendors.models import VendorInvoice, VendorPayment
from vendors.services.repository import default_repository
from vendors.services.vendor_lifecycle import validate_transition

logger = logging.getLogger("vendors")

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"

Status = VendorInvoice.Status


def _positive_amount(value, *, label: str) -> Decimal:
    try:
        amt = money(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise BillingValidationError(f"{label} must be a valid number") from exc
    if not amt.is_finite():
        raise BillingValidationError(f"{label} must be a valid number")
    if amt <= Decimal("0.00"):
        raise BillingValidationError(f"{label} must be greater than 0")
    return amt


def _transition(*, vendor_invoice, target_status: str):
    try:
        validate_transition(vendor_invoice=vendor_invoice, target_status=target_status)
    except InvalidTransitionError as exc:
        raise BillingConflictError(str(exc)) from exc
    vendor_invoice.status = target_status


def _lock(*, vendor_invoice_id, repository):
    vendor_invoice = repository.get_vendor_invoice(vendor_invoice_id, for_update=True)
    if vendor_invoice is None:
        raise BillingNotFoundError("Vendor invoice not found")
    return vendor_invoice


def _payload(vendor_invoice) -> dict:
    return {
        "vendor_invoice_id": str(vendor_invoice.pk),
        "vendor_id": str(vendor_invoice.vendor_id),
        "status": vendor_invoice.status,
    }


@dataclass(frozen=True)
class VendorPaymentResult:
    payment: VendorPayment
    vendor_invoice: VendorInvoice
    balance: Balance


# ============================================================
# SUBMIT (vendor)
# ============================================================


def _resolve_vendor(*, vendor_id, actor, repository):
    if get_user_role(actor) == ROLE_VENDOR:
        vendor = repository.get_vendor_for_user(actor)
        if vendor is None:
            raise BillingPermissionError("No vendor profile is linked to this user")
        if vendor_id is not None and str(vendor_id) != str(vendor.pk):
            raise BillingNotFoundError("Vendor not found")
        return vendor

    if vendor_id is None:
        raise BillingValidationError("vendor_id is required")
    vendor = repository.get_vendor(vendor_id)
    if vendor is None:
        raise BillingNotFoundError("Vendor not found")
    return vendor


def submit_vendor_invoice(
    *,
    invoice_number: str,
    total,
    actor,
    vendor_id=None,
    description: str = "",
    invoice_date: Optional[date] = None,
    due_date: Optional[date] = None,
    repository=None,
) -> VendorInvoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_VENDOR_INVOICE_SUBMIT, action="submit vendor invoices")

    invoice_number = (invoice_number or "").strip()
    if not invoice_number:
        raise BillingValidationError("Invoice number is required")
    amount = _positive_amount(total, label="Total")

    invoice_date = invoice_date or timezone.localdate()
    if due_date is not None and due_date < invoice_date:
        raise BillingValidationError("due_date cannot be before invoice_date")

    vendor = _resolve_vendor(vendor_id=vendor_id, actor=actor, repository=repository)

    if repository.vendor_invoice_number_taken(vendor_id=vendor.pk, invoice_number=invoice_number):
        raise BillingConflictError(f"Invoice number '{invoice_number}' already exists for this vendor")

    try:
        with repository.atomic():
            vendor_invoice = repository.create_vendor_invoice(
                vendor=vendor,
                invoice_number=invoice_number,
                description=(description or "").strip(),
                total=amount,
                invoice_date=invoice_date,
                due_date=due_date,
                status=Status.SUBMITTED_TO_ADMIN,
                submitted_by=actor_ref(actor),
            )
            notify_after_commit(
                repository=repository,
                event=EVENT_VENDOR_INVOICE_SUBMITTED,
                payload=_payload(vendor_invoice),
            )
    except IntegrityError as exc:
        raise BillingConflictError(
            f"Invoice number '{invoice_number}' already exists for this vendor"
        ) from exc

    logger.info(
        "Vendor invoice submitted",
        extra={
            "vendor_invoice_id": str(vendor_invoice.pk),
            "vendor_id": str(vendor.pk),
            "total": str(amount),
        },
    )
    return vendor_invoice


# ============================================================
# ADMIN REVIEW
# ============================================================


def admin_review(*, vendor_invoice_id, action: str, notes: str = "", actor, repository=None) -> VendorInvoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_VENDOR_ADMIN_REVIEW, action="review vendor invoices")

    action = (action or "").strip().lower()
    if action not in (ACTION_APPROVE, ACTION_REJECT):
        raise BillingValidationError("Action must be 'approve' or 'reject'")

    notes = (notes or "").strip()
    if action == ACTION_REJECT and not notes:
        raise BillingValidationError("Notes are required when rejecting a vendor invoice")

    with repository.atomic():
        vendor_invoice = _lock(vendor_invoice_id=vendor_invoice_id, repository=repository)

        if vendor_invoice.status != Status.SUBMITTED_TO_ADMIN:
            raise BillingConflictError(
                f"Vendor invoice is '{vendor_invoice.status}'; only invoices awaiting admin review can be reviewed"
            )

        now = timezone.now()
        if action == ACTION_APPROVE:
            _transition(vendor_invoice=vendor_invoice, target_status=Status.SUBMITTED_TO_ACCOUNTING)
            vendor_invoice.approved_by = actor_ref(actor)
            vendor_invoice.approved_at = now
            vendor_invoice.sent_to_accounting_at = now
            vendor_invoice.admin_notes = notes
            fields = ["status", "approved_by", "approved_at", "sent_to_accounting_at", "admin_notes"]
            event = EVENT_VENDOR_INVOICE_APPROVED
        else:
            _transition(vendor_invoice=vendor_invoice, target_status=Status.REJECTED_BY_ADMIN)
            vendor_invoice.rejected_by = actor_ref(actor)
            vendor_invoice.rejected_at = now
            vendor_invoice.admin_notes = f"Rejected by {actor_label(actor)}: {notes}"
            fields = ["status", "rejected_by", "rejected_at", "admin_notes"]
            event = EVENT_VENDOR_INVOICE_REJECTED

        repository.save_vendor_invoice(vendor_invoice, fields=fields)
        notify_after_commit(repository=repository, event=event, payload=_payload(vendor_invoice))

    logger.info(
        "Vendor invoice reviewed by admin",
        extra={
            "vendor_invoice_id": str(vendor_invoice.pk),
            "action": action,
            "status": vendor_invoice.status,
        },
    )
    return vendor_invoice


# ============================================================
# ACCOUNTING: PAY
# ============================================================


def record_vendor_payment(
    *,
    vendor_invoice_id,
    amount,
    payment_method: str,
    actor,
    payment_date: Optional[date] = None,
    reference_number: str = "",
    notes: str = "",
    repository=None,
) -> VendorPaymentResult:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_VENDOR_ACCOUNTING, action="record vendor payments")

    amt = _positive_amount(amount, label="Amount")
    method = (payment_method or "").strip().lower()
    if not method:
        raise BillingValidationError("Payment method is required")

    with repository.atomic():
        vendor_invoice = _lock(vendor_invoice_id=vendor_invoice_id, repository=repository)

        if vendor_invoice.status == Status.PAID:
            raise BillingValidationError("Vendor invoice is already paid")
        if vendor_invoice.status != Status.SUBMITTED_TO_ACCOUNTING:
            raise BillingConflictError(
                f"Vendor invoice is '{vendor_invoice.status}'; payments can only be recorded once approved by admin"
            )

        before = vendor_invoice_balance(vendor_invoice, repository.list_vendor_payments(vendor_invoice.pk))
        if amt > before.outstanding:
            logger.warning(
                "Vendor payment exceeds outstanding balance",
                extra={
                    "vendor_invoice_id": str(vendor_invoice.pk),
                    "amount": str(amt),
                    "outstanding": str(before.outstanding),
                },
            )
            raise BillingValidationError(
                f"Payment amount {amt} exceeds outstanding balance {before.outstanding}"
            )

        now = timezone.now()
        payment = repository.create_vendor_payment(
            vendor_invoice=vendor_invoice,
            amount=amt,
            payment_date=payment_date or timezone.localdate(),
            payment_method=method,
            reference_number=(reference_number or "").strip(),
            notes=(notes or "").strip(),
            status=VendorPayment.Status.PROCESSED,
            processed_by=actor_ref(actor),
            processed_at=now,
        )

        balance = vendor_invoice_balance(vendor_invoice, repository.list_vendor_payments(vendor_invoice.pk))
        if balance.is_fully_paid:
            _transition(vendor_invoice=vendor_invoice, target_status=Status.PAID)
            vendor_invoice.paid_at = now
            repository.save_vendor_invoice(vendor_invoice, fields=["status", "paid_at"])

        notify_after_commit(
            repository=repository,
            event=EVENT_VENDOR_PAYMENT_RECORDED,
            payload={**_payload(vendor_invoice), "payment_id": str(payment.pk), "amount": str(amt)},
        )

    logger.info(
        "Vendor payment recorded",
        extra={
            "vendor_invoice_id": str(vendor_invoice.pk),
            "payment_id": str(payment.pk),
            "outstanding": str(balance.outstanding),
            "status": vendor_invoice.status,
        },
    )
    return VendorPaymentResult(payment=payment, vendor_invoice=vendor_invoice, balance=balance)


# ============================================================
# ACCOUNTING: REJECT
# ============================================================


def accounting_reject(*, vendor_invoice_id, notes: str, actor, repository=None) -> VendorInvoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_VENDOR_ACCOUNTING, action="reject vendor invoices")

    notes = (notes or "").strip()
    if not notes:
        raise BillingValidationError("Notes are required when rejecting a vendor invoice")

    with repository.atomic():
        vendor_invoice = _lock(vendor_invoice_id=vendor_invoice_id, repository=repository)

        if vendor_invoice.status != Status.SUBMITTED_TO_ACCOUNTING:
            raise BillingConflictError(
                f"Vendor invoice is '{vendor_invoice.status}'; only invoices with accounting can be rejected by accounting"
            )

        if repository.list_vendor_payments(vendor_invoice.pk):
            raise BillingValidationError(
                "Vendor invoice already has processed payments and can no longer be rejected"
            )

        _transition(vendor_invoice=vendor_invoice, target_status=Status.REJECTED_BY_ACCOUNTANT)
        vendor_invoice.rejected_by = actor_ref(actor)
        vendor_invoice.rejected_at = timezone.now()
        vendor_invoice.accounting_notes = f"Rejected by {actor_label(actor)}: {notes}"
        repository.save_vendor_invoice(
            vendor_invoice,
            fields=["status", "rejected_by", "rejected_at", "accounting_notes"],
        )

        notify_after_commit(
            repository=repository,
            event=EVENT_VENDOR_INVOICE_REJECTED,
            payload=_payload(vendor_invoice),
        )

    logger.info(
        "Vendor invoice rejected by accounting",
        extra={"vendor_invoice_id": str(vendor_invoice.pk)},
    )
    return vendor_invoice


# ============================================================
# READ
# ============================================================


def vendor_invoices_for_actor(*, actor, status: Optional[str] = None, repository=None) -> list[VendorInvoice]:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_VENDOR_INVOICE_VIEW, action="view vendor invoices")

    if status and status not in Status.values:
        raise BillingValidationError(f"Unknown status '{status}'")

    if get_user_role(actor) == ROLE_VENDOR:
        vendor = repository.get_vendor_for_user(actor)
        if vendor is None:
            return []
        return repository.list_vendor_invoices(vendor_id=vendor.pk, status=status)

    return repository.list_vendor_invoices(status=status)


def vendor_invoice_summary(*, vendor_invoice, repository=None) -> dict:
    repository = repository or default_repository
    balance = vendor_invoice_balance(vendor_invoice, repository.list_vendor_payments(vendor_invoice.pk))
    return {
        "vendor_invoice_id": str(vendor_invoice.pk),
        "status": vendor_invoice.status,
        "balance": balance.as_dict(),
    }
