# courses/models.py

"""
COURSE MASTER DATA

Billing reads these records; it only ever writes the invoicing flags on
Course (ready_for_billing / invoiced), and only from the invoice ledger.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Organization(models.Model):
    """
    Customer organization that books training and receives invoices.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True, default="")
    contact_phone = models.CharField(max_length=50, blank=True, default="")
    address = models.TextField(blank=True, default="")

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="courses_org_name_idx"),
            models.Index(fields=["is_active"], name="courses_org_active_idx"),
        ]

    def __str__(self):
        return self.name


class CourseType(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=150, unique=True)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class CoursePricing(models.Model):
    """
    Price per attending student for an (organization, course type) pair.

    At most one ACTIVE row per pair.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="pricing",
    )
    course_type = models.ForeignKey(
        CourseType,
        on_delete=models.PROTECT,
        related_name="pricing",
    )

    price_per_student = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "course_type"],
                condition=models.Q(is_active=True),
                name="uniq_active_pricing_per_org_course_type",
            ),
            models.CheckConstraint(
                condition=models.Q(price_per_student__gte=Decimal("0.00")),
                name="course_pricing_price_nonnegative",
            ),
        ]

    def __str__(self):
        return f"{self.organization} / {self.course_type}: {self.price_per_student}"


class Course(models.Model):
    """
    A scheduled (and eventually completed) training course for one organization.
    """

    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name="courses",
    )
    course_type = models.ForeignKey(
        CourseType,
        on_delete=models.PROTECT,
        related_name="courses",
    )

    location = models.CharField(max_length=255, blank=True, default="")
    scheduled_date = models.DateField(null=True, blank=True)
    registered_students = models.PositiveIntegerField(default=0)

    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    completed_at = models.DateTimeField(null=True, blank=True)

    # Invoicing flags (written only by billing.services.invoice_service)
    ready_for_billing = models.BooleanField(default=False)
    ready_for_billing_at = models.DateTimeField(null=True, blank=True)
    invoiced = models.BooleanField(default=False)
    invoiced_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "invoiced"], name="courses_status_invoiced_idx"),
            models.Index(fields=["organization", "created_at"], name="courses_org_created_idx"),
        ]

    def clean(self):
        if self.invoiced and not self.invoiced_at:
            raise ValidationError({"invoiced_at": "invoiced_at is required when invoiced"})

    @property
    def attended_students(self) -> int:
        return self.students.filter(attended=True).count()

    def __str__(self):
        return f"{self.course_type} @ {self.location or 'TBD'} ({self.organization})"


class CourseStudent(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="students",
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    attended = models.BooleanField(default=False)

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [
            models.Index(fields=["course", "attended"], name="courses_student_attended_idx"),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}".strip()
