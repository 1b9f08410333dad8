# billing/models/payment.py

"""
PAYMENT MODEL

A funds-transfer claim submitted by an organization against an invoice.

Lifecycle (owned by billing.services.verification_service):
    pending_verification -> verified | rejected
    verified             -> reversed   (within the reversal window)

`notes` is an append-only audit log: each entry is attributed
("Verified by ...", "Rejected by ...", "Reversed by ...") and entries are
separated by a blank line.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

NOTE_SEPARATOR = "\n\n"


class Payment(models.Model):
    class Status(models.TextChoices):
        PENDING_VERIFICATION = "pending_verification", "Pending Verification"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"
        REVERSED = "reversed", "Reversed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=50)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    payment_date = models.DateField(default=timezone.localdate)

    notes = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=25,
        choices=Status.choices,
        default=Status.PENDING_VERIFICATION,
    )

    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments_submitted",
    )
    submitted_at = models.DateTimeField(default=timezone.now)

    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments_verified",
    )
    verified_at = models.DateTimeField(null=True, blank=True)

    rejected_at = models.DateTimeField(null=True, blank=True)

    reversed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments_reversed",
    )
    reversed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-submitted_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0.00")),
                name="payment_amount_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["invoice", "status"], name="payment_invoice_status_idx"),
            models.Index(fields=["status", "submitted_at"], name="payment_status_submitted_idx"),
        ]

    def clean(self):
        if self.amount is not None and self.amount <= Decimal("0.00"):
            raise ValidationError({"amount": "amount must be greater than 0"})

        if not (self.payment_method or "").strip():
            raise ValidationError({"payment_method": "payment_method is required"})

        if self.status in (self.Status.VERIFIED, self.Status.REVERSED) and not self.verified_at:
            raise ValidationError({"verified_at": "verified_at is required once verified"})

        if self.status == self.Status.REVERSED and not self.reversed_at:
            raise ValidationError({"reversed_at": "reversed_at is required when reversed"})

    def append_note(self, entry: str) -> None:
        entry = (entry or "").strip()
        if not entry:
            return
        self.notes = f"{self.notes}{NOTE_SEPARATOR}{entry}" if self.notes else entry

    def save(self, *args, **kwargs):
        self.full_clean(validate_constraints=False)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.amount} [{self.status}] -> {self.invoice_id}"
