# billing/services/readiness_service.py

"""
BILLING READINESS VALIDATOR (PRE-FLIGHT CHECK)

Decides whether a completed course may become an invoice.

GUARANTEES:
- READ-ONLY: no writes, safe to call repeatedly
- Every rule is checked independently (no short-circuit) so the caller
  sees every problem at once, in a stable order
- estimated_amount = attended_students x price_per_student
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from courses.models import Course

from billing.services.balance_service import money
from billing.services.exceptions import BillingNotFoundError
from billing.services.repository import default_repository


@dataclass
class ReadinessResult:
    course_id: object
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    estimated_amount: Decimal = Decimal("0.00")
    attended_students: int = 0
    registered_students: int = 0
    price_per_student: Optional[Decimal] = None

    def as_dict(self) -> dict:
        return {
            "course_id": str(self.course_id),
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "estimated_amount": str(self.estimated_amount),
            "attended_students": self.attended_students,
            "registered_students": self.registered_students,
            "price_per_student": (
                str(self.price_per_student) if self.price_per_student is not None else None
            ),
        }


def evaluate_course(*, course, repository=None) -> ReadinessResult:
    """
    Run the readiness rules against an already-loaded course.
    """
    repository = repository or default_repository

    errors: list[str] = []
    warnings: list[str] = []

    if course.status != Course.STATUS_COMPLETED:
        errors.append(f"Course status must be 'completed' (currently '{course.status}')")

    if course.invoiced:
        errors.append("Course has already been invoiced")

    if course.ready_for_billing:
        errors.append("Course is already marked ready for billing")

    pricing = repository.get_active_pricing(
        organization_id=course.organization_id,
        course_type_id=course.course_type_id,
    )
    price = money(pricing.price_per_student) if pricing is not None else None
    if price is None:
        errors.append("No active pricing configured for this organization and course type")

    attended = repository.count_attended(course)
    if attended <= 0:
        errors.append("No students are marked as attended")

    if not (course.organization.contact_email or "").strip():
        errors.append("Organization has no contact email")

    registered = course.registered_students or 0
    if registered > attended:
        warnings.append(
            f"{registered - attended} of {registered} registered students did not attend"
        )

    if course.completed_at is None:
        warnings.append("Course has no completion timestamp")

    estimated = money(Decimal(attended) * price) if price is not None else Decimal("0.00")

    return ReadinessResult(
        course_id=course.pk,
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        estimated_amount=estimated,
        attended_students=attended,
        registered_students=registered,
        price_per_student=price,
    )


def validate_billing_readiness(*, course_id, repository=None) -> ReadinessResult:
    repository = repository or default_repository

    course = repository.get_course(course_id)
    if course is None:
        raise BillingNotFoundError("Course not found")

    return evaluate_course(course=course, repository=repository)


def billing_queue(*, repository=None) -> list[ReadinessResult]:
    """
    Completed, not-yet-invoiced courses with their readiness result,
    oldest completion first.
    """
    repository = repository or default_repository
    return [
        evaluate_course(course=course, repository=repository)
        for course in repository.billable_courses()
    ]
