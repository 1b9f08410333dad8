# billing/models/invoice.py

"""
INVOICE MODEL

One invoice per completed course, owned by the course's organization.

Rules:
- total_amount is ALWAYS base_cost + tax_amount (recomputed on save)
- Billing snapshot (course, organization, students, rate, money) is
  immutable once the invoice exists
- Never deleted; closed with void / cancelled
- Status changes go through billing.services.invoice_lifecycle
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

TWOPLACES = Decimal("0.01")


class Invoice(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAYMENT_SUBMITTED = "payment_submitted", "Payment Submitted"
        PAID = "paid", "Paid"
        VOID = "void", "Void"
        CANCELLED = "cancelled", "Cancelled"

    _IMMUTABLE_FIELDS = (
        "invoice_number",
        "organization_id",
        "course_id",
        "students_billed",
        "rate_per_student",
        "base_cost",
        "tax_amount",
        "total_amount",
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice_number = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        help_text="System-generated: INV-<year>-<6 digits>",
    )

    organization = models.ForeignKey(
        "courses.Organization",
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    # OneToOne: a course can only ever be invoiced once
    course = models.OneToOneField(
        "courses.Course",
        on_delete=models.PROTECT,
        related_name="invoice",
    )

    invoice_date = models.DateField(default=timezone.localdate)

    students_billed = models.PositiveIntegerField()
    rate_per_student = models.DecimalField(max_digits=10, decimal_places=2)

    base_cost = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING
    )

    due_date = models.DateField()
    paid_date = models.DateField(null=True, blank=True)

    posted_to_org = models.BooleanField(default=False)
    posted_to_org_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices_created",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-invoice_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_cost__gte=Decimal("0.00")),
                name="invoice_base_cost_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(tax_amount__gte=Decimal("0.00")),
                name="invoice_tax_amount_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=Decimal("0.00")),
                name="invoice_total_amount_nonnegative",
            ),
        ]
        indexes = [
            models.Index(fields=["organization", "status"], name="invoice_org_status_idx"),
            models.Index(fields=["status", "due_date"], name="invoice_status_due_idx"),
        ]

    def clean(self):
        if self.status == self.Status.PAID and not self.paid_date:
            raise ValidationError({"paid_date": "paid_date is required when status is paid"})

        if self.due_date and self.invoice_date and self.due_date < self.invoice_date:
            raise ValidationError({"due_date": "due_date cannot be before invoice_date"})

    def _validate_immutable(self, previous: "Invoice"):
        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(
                    f"Invoice {previous.invoice_number}: field '{field}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            year = timezone.localdate().year
            self.invoice_number = f"INV-{year}-{uuid.uuid4().int % 1_000_000:06d}"

        self.base_cost = Decimal(self.base_cost or "0.00").quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        self.tax_amount = Decimal(self.tax_amount or "0.00").quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        self.total_amount = self.base_cost + self.tax_amount

        if self.pk and not self._state.adding:
            previous = Invoice.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        # Uniqueness is left to the database (course one-to-one -> IntegrityError).
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_number} | {self.total_amount} | {self.status}"
