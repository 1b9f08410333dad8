# billing/services/invoice_service.py

"""
INVOICE LEDGER (DOMAIN-CONTROLLED)

Creates invoices from billing-ready courses and owns the explicit invoice
operations (post to organization, update, void, cancel).

GUARANTEES:
- A course is invoiced at most once, even under concurrent requests:
  course row lock + live `invoiced` guard + one-to-one DB constraint
- Invoice insert and course flag flip commit or fail together
- Money: base = attended x price, tax = base x TAX_RATE, total = base + tax,
  all quantized to 2 places (ROUND_HALF_UP)
- All business checks run before any write
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone

from billing.models import Invoice, Payment
from billing.services.balance_service import invoice_balance, money
from billing.services.exceptions import (
    BillingConflictError,
    BillingNotFoundError,
    BillingValidationError,
)
from billing.services.guards import actor_label, actor_ref, actor_sees_invoice, assert_actor_can
from billing.services.invoice_lifecycle import (
    InvalidTransitionError,
    validate_invoice_transition,
)
from billing.services.notifications import (
    EVENT_INVOICE_CLOSED,
    EVENT_INVOICE_CREATED,
    EVENT_INVOICE_POSTED,
    notify_after_commit,
)
from billing.services.readiness_service import evaluate_course
from billing.services.repository import default_repository
from permissions.roles import CAP_INVOICE_CREATE, CAP_INVOICE_MANAGE, CAP_INVOICE_VIEW

logger = logging.getLogger("billing")

AGING_CURRENT = "current"
AGING_1_30 = "1-30 days"
AGING_31_60 = "31-60 days"
AGING_61_90 = "61-90 days"
AGING_90_PLUS = "90+ days"


def _billing_setting(key: str, default):
    return getattr(settings, "BILLING", {}).get(key, default)


def _tax_rate() -> Decimal:
    return Decimal(str(_billing_setting("TAX_RATE", "0.13")))


def _due_days() -> int:
    return int(_billing_setting("INVOICE_DUE_DAYS", 30))


# ============================================================
# CREATE
# ============================================================


def create_invoice(*, course_id, actor, repository=None) -> Invoice:
    """
    FLOW:
    1) Load course (NotFound) and re-run the readiness check (Validation, itemized)
    2) Compute money
    3) Atomic: lock course -> live `invoiced` guard (Conflict) -> insert invoice
       -> flip ready_for_billing / invoiced
    """
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_CREATE, action="create invoices")

    course = repository.get_course(course_id)
    if course is None:
        raise BillingNotFoundError("Course not found")

    readiness = evaluate_course(course=course, repository=repository)
    if not readiness.is_valid:
        logger.warning(
            "Invoice creation refused: course not ready for billing",
            extra={"course_id": str(course_id), "errors": readiness.errors},
        )
        raise BillingValidationError(
            "Course is not ready for billing", details=readiness.errors
        )

    price = readiness.price_per_student
    base_cost = money(Decimal(readiness.attended_students) * price)
    tax_amount = money(base_cost * _tax_rate())
    today = timezone.localdate()

    try:
        with repository.atomic():
            locked = repository.get_course(course_id, for_update=True)
            if locked is None:
                raise BillingNotFoundError("Course not found")
            if locked.invoiced:
                raise BillingConflictError("Course has already been invoiced")

            invoice = repository.create_invoice(
                organization=course.organization,
                course=locked,
                invoice_date=today,
                students_billed=readiness.attended_students,
                rate_per_student=price,
                base_cost=base_cost,
                tax_amount=tax_amount,
                total_amount=base_cost + tax_amount,
                status=Invoice.Status.PENDING,
                due_date=today + timedelta(days=_due_days()),
                created_by=actor_ref(actor),
            )

            now = timezone.now()
            locked.ready_for_billing = True
            locked.ready_for_billing_at = now
            locked.invoiced = True
            locked.invoiced_at = now
            repository.save_course(
                locked,
                fields=["ready_for_billing", "ready_for_billing_at", "invoiced", "invoiced_at"],
            )

            notify_after_commit(
                repository=repository,
                event=EVENT_INVOICE_CREATED,
                payload={
                    "invoice_id": str(invoice.pk),
                    "invoice_number": invoice.invoice_number,
                    "organization_id": str(invoice.organization_id),
                },
            )
    except IntegrityError as exc:
        logger.warning(
            "Invoice creation lost a race on the course constraint",
            extra={"course_id": str(course_id)},
        )
        raise BillingConflictError("Course has already been invoiced") from exc

    logger.info(
        "Invoice created",
        extra={
            "invoice_id": str(invoice.pk),
            "invoice_number": invoice.invoice_number,
            "course_id": str(course_id),
            "total_amount": str(invoice.total_amount),
        },
    )
    return invoice


# ============================================================
# READ
# ============================================================


def get_invoice_for_actor(*, invoice_id, actor, repository=None) -> Invoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_VIEW, action="view invoices")

    invoice = repository.get_invoice(invoice_id)
    if invoice is None or not actor_sees_invoice(actor, invoice):
        raise BillingNotFoundError("Invoice not found")
    return invoice


def _aging_bucket(*, due_date: date, today: date, is_fully_paid: bool) -> str:
    if is_fully_paid or today <= due_date:
        return AGING_CURRENT

    days = (today - due_date).days
    if days <= 30:
        return AGING_1_30
    if days <= 60:
        return AGING_31_60
    if days <= 90:
        return AGING_61_90
    return AGING_90_PLUS


def get_invoice_summary(*, invoice, repository=None, today: Optional[date] = None) -> dict:
    repository = repository or default_repository
    today = today or timezone.localdate()

    payments = repository.list_invoice_payments(invoice.pk)
    balance = invoice_balance(invoice, payments, today=today)

    return {
        "invoice_id": str(invoice.pk),
        "invoice_number": invoice.invoice_number,
        "status": invoice.status,
        "balance": balance.as_dict(),
        "days_overdue": max(0, (today - invoice.due_date).days),
        "aging_bucket": _aging_bucket(
            due_date=invoice.due_date, today=today, is_fully_paid=balance.is_fully_paid
        ),
        "payment_count": len(payments),
    }


# ============================================================
# POST TO ORGANIZATION
# ============================================================


def post_invoice_to_organization(*, invoice_id, actor, repository=None) -> Invoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_MANAGE, action="post invoices")

    with repository.atomic():
        invoice = repository.get_invoice(invoice_id, for_update=True)
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")

        if invoice.status in (Invoice.Status.VOID, Invoice.Status.CANCELLED):
            raise BillingConflictError(f"Invoice is {invoice.status}")
        if invoice.posted_to_org:
            raise BillingConflictError("Invoice has already been posted to the organization")

        invoice.posted_to_org = True
        invoice.posted_to_org_at = timezone.now()
        repository.save_invoice(invoice, fields=["posted_to_org", "posted_to_org_at"])

        notify_after_commit(
            repository=repository,
            event=EVENT_INVOICE_POSTED,
            payload={
                "invoice_id": str(invoice.pk),
                "invoice_number": invoice.invoice_number,
                "organization_id": str(invoice.organization_id),
            },
        )

    logger.info(
        "Invoice posted to organization",
        extra={"invoice_id": str(invoice.pk), "organization_id": str(invoice.organization_id)},
    )
    return invoice


# ============================================================
# UPDATE (explicit merge of optional fields)
# ============================================================


@dataclass(frozen=True)
class InvoiceUpdate:
    """
    Fields an invoice update may carry. None means "keep the current value".
    Money, status and the billed course are never updatable.
    """

    due_date: Optional[date] = None
    notes: Optional[str] = None

    def is_empty(self) -> bool:
        return self.due_date is None and self.notes is None


def merge_invoice_update(invoice, changes: InvoiceUpdate) -> list[str]:
    """
    Apply `changes` onto `invoice` in place; returns the names of the
    fields that actually changed.
    """
    changed: list[str] = []

    if changes.due_date is not None and changes.due_date != invoice.due_date:
        if changes.due_date < invoice.invoice_date:
            raise BillingValidationError("due_date cannot be before the invoice date")
        invoice.due_date = changes.due_date
        changed.append("due_date")

    if changes.notes is not None and changes.notes != invoice.notes:
        invoice.notes = changes.notes
        changed.append("notes")

    return changed


def update_invoice(*, invoice_id, changes: InvoiceUpdate, actor, repository=None) -> Invoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_MANAGE, action="update invoices")

    if changes.is_empty():
        raise BillingValidationError("Nothing to update")

    with repository.atomic():
        invoice = repository.get_invoice(invoice_id, for_update=True)
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")

        if invoice.status in (Invoice.Status.VOID, Invoice.Status.CANCELLED):
            raise BillingConflictError(f"Invoice is {invoice.status} and can no longer be updated")

        changed = merge_invoice_update(invoice, changes)
        if changed:
            repository.save_invoice(invoice, fields=changed)

    logger.info(
        "Invoice updated",
        extra={"invoice_id": str(invoice.pk), "fields": changed},
    )
    return invoice


# ============================================================
# VOID / CANCEL (terminal)
# ============================================================


def _close_invoice(*, invoice_id, reason: str, actor, target_status: str, repository) -> Invoice:
    reason = (reason or "").strip()
    if not reason:
        raise BillingValidationError("A reason is required")

    with repository.atomic():
        invoice = repository.get_invoice(invoice_id, for_update=True)
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")

        if target_status == Invoice.Status.CANCELLED and invoice.posted_to_org:
            raise BillingValidationError(
                "Invoice has been posted to the organization; void it instead"
            )
        if target_status == Invoice.Status.VOID and not invoice.posted_to_org:
            raise BillingValidationError(
                "Invoice has not been posted to the organization; cancel it instead"
            )

        payments = repository.list_invoice_payments(invoice.pk)
        open_payments = [
            p
            for p in payments
            if p.status in (Payment.Status.VERIFIED, Payment.Status.PENDING_VERIFICATION)
        ]
        if open_payments:
            raise BillingValidationError(
                "Invoice has verified or pending payments; reject or reverse them first"
            )

        try:
            validate_invoice_transition(invoice=invoice, target_status=target_status)
        except InvalidTransitionError as exc:
            raise BillingConflictError(str(exc)) from exc

        entry = f"{target_status.capitalize()} by {actor_label(actor)}: {reason}"
        invoice.status = target_status
        invoice.notes = f"{invoice.notes}\n\n{entry}" if invoice.notes else entry
        repository.save_invoice(invoice, fields=["status", "notes"])

        notify_after_commit(
            repository=repository,
            event=EVENT_INVOICE_CLOSED,
            payload={"invoice_id": str(invoice.pk), "status": target_status},
        )

    logger.info(
        "Invoice closed",
        extra={"invoice_id": str(invoice.pk), "status": target_status},
    )
    return invoice


def void_invoice(*, invoice_id, reason: str, actor, repository=None) -> Invoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_MANAGE, action="void invoices")
    return _close_invoice(
        invoice_id=invoice_id,
        reason=reason,
        actor=actor,
        target_status=Invoice.Status.VOID,
        repository=repository,
    )


def cancel_invoice(*, invoice_id, reason: str, actor, repository=None) -> Invoice:
    repository = repository or default_repository
    assert_actor_can(actor=actor, capability=CAP_INVOICE_MANAGE, action="cancel invoices")
    return _close_invoice(
        invoice_id=invoice_id,
        reason=reason,
        actor=actor,
        target_status=Invoice.Status.CANCELLED,
        repository=repository,
    )
