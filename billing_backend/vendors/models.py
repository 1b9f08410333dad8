# vendors/models.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Vendor(models.Model):
    """
    Vendor master. A vendor portal user (role=vendor) is linked one-to-one.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.TextField(blank=True, default="")

    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_profile",
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="vendor_name_idx"),
            models.Index(fields=["is_active"], name="vendor_active_idx"),
        ]

    def __str__(self):
        return self.name


class VendorInvoice(models.Model):
    """
    Payable owed to a vendor.

    Workflow (vendors.services.workflow_service):
        submitted_to_admin      -> submitted_to_accounting | rejected_by_admin
        submitted_to_accounting -> paid (by payments)      | rejected_by_accountant
    """

    class Status(models.TextChoices):
        SUBMITTED_TO_ADMIN = "submitted_to_admin", "Submitted to Admin"
        SUBMITTED_TO_ACCOUNTING = "submitted_to_accounting", "Submitted to Accounting"
        REJECTED_BY_ADMIN = "rejected_by_admin", "Rejected by Admin"
        REJECTED_BY_ACCOUNTANT = "rejected_by_accountant", "Rejected by Accountant"
        PAID = "paid", "Paid"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    invoice_number = models.CharField(max_length=64)
    description = models.TextField(blank=True, default="")
    total = models.DecimalField(max_digits=14, decimal_places=2)

    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=30, choices=Status.choices, default=Status.SUBMITTED_TO_ADMIN
    )

    admin_notes = models.TextField(blank=True, default="")
    accounting_notes = models.TextField(blank=True, default="")

    submitted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_invoices_submitted",
    )
    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_invoices_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_invoices_rejected",
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    sent_to_accounting_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["vendor", "invoice_number"],
                name="uniq_vendor_invoice_number",
            ),
            models.CheckConstraint(
                condition=models.Q(total__gt=Decimal("0.00")),
                name="vendor_invoice_total_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="vendor_inv_status_idx"),
        ]

    def clean(self):
        if not (self.invoice_number or "").strip():
            raise ValidationError({"invoice_number": "invoice_number is required"})

        if self.total is not None and self.total <= Decimal("0.00"):
            raise ValidationError({"total": "total must be greater than 0"})

        if self.status == self.Status.PAID and not self.paid_at:
            raise ValidationError({"paid_at": "paid_at is required when status is paid"})

    def save(self, *args, **kwargs):
        if self.invoice_number is not None:
            self.invoice_number = self.invoice_number.strip()

        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_number} ({self.vendor.name})"


class VendorPayment(models.Model):
    """
    Payment made by accounting against an approved vendor invoice.
    Recorded payments are final (status is always processed).
    """

    class Status(models.TextChoices):
        PROCESSED = "processed", "Processed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    vendor_invoice = models.ForeignKey(
        VendorInvoice,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=50)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PROCESSED
    )

    processed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendor_payments_processed",
    )
    processed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-processed_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=Decimal("0.00")),
                name="vendor_payment_amount_gt_zero",
            ),
        ]

    def __str__(self):
        return f"{self.amount} -> {self.vendor_invoice_id}"
