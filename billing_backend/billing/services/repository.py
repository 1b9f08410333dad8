# billing/services/repository.py

"""
BILLING REPOSITORY (ORM-BACKED)

The billing services never touch the ORM directly; they receive a
repository (default: BillingRepository) so the state machine can run
against an in-memory double in tests.

Locking:
- `for_update=True` takes a row lock (SELECT ... FOR UPDATE) and MUST be
  called inside `repository.atomic()`
- Invoice rows are always locked before their payments
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from billing.models import Invoice, Payment
from courses.models import Course, CoursePricing


def get_or_none(qs, pk):
    try:
        return qs.filter(pk=pk).first()
    except (ValueError, DjangoValidationError):
        # malformed identifier
        return None


class BillingRepository:
    # ---------------- UNIT OF WORK ----------------
    def atomic(self):
        return transaction.atomic()

    def on_commit(self, fn) -> None:
        transaction.on_commit(fn)

    # ---------------- COURSES (READ-ONLY + FLAGS) ----------------
    def get_course(self, course_id, *, for_update: bool = False):
        if for_update:
            return get_or_none(Course.objects.select_for_update(), course_id)
        return get_or_none(
            Course.objects.select_related("organization", "course_type"), course_id
        )

    def count_attended(self, course) -> int:
        return course.students.filter(attended=True).count()

    def get_active_pricing(self, *, organization_id, course_type_id):
        return (
            CoursePricing.objects.filter(
                organization_id=organization_id,
                course_type_id=course_type_id,
                is_active=True,
            )
            .order_by("-created_at")
            .first()
        )

    def save_course(self, course, *, fields: list[str]) -> None:
        course.save(update_fields=fields)

    def billable_courses(self) -> list:
        return list(
            Course.objects.select_related("organization", "course_type")
            .filter(status=Course.STATUS_COMPLETED, invoiced=False)
            .order_by("completed_at", "created_at")
        )

    # ---------------- INVOICES ----------------
    def get_invoice(self, invoice_id, *, for_update: bool = False):
        if for_update:
            return get_or_none(Invoice.objects.select_for_update(), invoice_id)
        return get_or_none(
            Invoice.objects.select_related("organization", "course"), invoice_id
        )

    def create_invoice(self, **fields) -> Invoice:
        return Invoice.objects.create(**fields)

    def save_invoice(self, invoice, *, fields: list[str]) -> None:
        invoice.save(update_fields=[*fields, "updated_at"])

    # ---------------- PAYMENTS ----------------
    def get_payment(self, payment_id, *, for_update: bool = False):
        if for_update:
            return get_or_none(Payment.objects.select_for_update(), payment_id)
        return get_or_none(Payment.objects.all(), payment_id)

    def list_invoice_payments(self, invoice_id) -> list:
        return list(
            Payment.objects.filter(invoice_id=invoice_id).order_by("submitted_at")
        )

    def create_payment(self, **fields) -> Payment:
        return Payment.objects.create(**fields)

    def save_payment(self, payment, *, fields: list[str]) -> None:
        payment.save(update_fields=[*fields, "updated_at"])

    def payments_with_status(self, statuses) -> list:
        return list(
            Payment.objects.select_related("invoice", "invoice__organization", "submitted_by")
            .filter(status__in=list(statuses))
            .order_by("submitted_at")
        )


default_repository = BillingRepository()
