# billing/tests/fakes.py

"""
In-memory stand-ins for the billing repository and for authenticated actors.

InMemoryBillingRepository behaves like a single-connection transactional
store:
- atomic() snapshots every record and restores the snapshot if the block
  raises; on_commit callbacks run only when the outermost block succeeds
- every for_update read is recorded in `lock_log` as (kind, id)
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from types import SimpleNamespace

from billing.models import Invoice, Payment
from courses.models import Course


def make_actor(role: str, *, organization_id=None, name: str | None = None):
    return SimpleNamespace(
        role=role,
        is_authenticated=True,
        organization_id=organization_id,
        display_name=name or f"{role.capitalize()} User",
        email=f"{role}@example.com",
        pk=None,
    )


class InMemoryBillingRepository:
    def __init__(self):
        self.courses: dict[str, Course] = {}
        self.attended: dict[str, int] = {}
        self.pricing: dict[tuple[str, str], SimpleNamespace] = {}
        self.invoices: dict[str, Invoice] = {}
        self.payments: dict[str, Payment] = {}

        self.lock_log: list[tuple[str, str]] = []
        self.committed_callbacks = 0
        self._pending_callbacks: list = []
        self._depth = 0
        self._sequence = 0

    # ---------------- SEEDING ----------------
    def add_course(self, course, *, attended: int, price=None):
        self.courses[str(course.pk)] = course
        self.attended[str(course.pk)] = attended
        if price is not None:
            self.pricing[(str(course.organization_id), str(course.course_type_id))] = SimpleNamespace(
                price_per_student=price
            )
        return course

    def add_invoice(self, invoice):
        if not invoice.invoice_number:
            invoice.invoice_number = self._next_number()
        invoice.total_amount = invoice.base_cost + invoice.tax_amount
        self.invoices[str(invoice.pk)] = invoice
        return invoice

    def _next_number(self) -> str:
        self._sequence += 1
        return f"INV-TEST-{self._sequence:06d}"

    # ---------------- UNIT OF WORK ----------------
    @contextmanager
    def atomic(self):
        snapshot = None
        if self._depth == 0:
            snapshot = (
                {k: copy.copy(v) for k, v in self.courses.items()},
                {k: copy.copy(v) for k, v in self.invoices.items()},
                {k: copy.copy(v) for k, v in self.payments.items()},
            )
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if snapshot is not None:
                self.courses, self.invoices, self.payments = snapshot
                self._pending_callbacks = []
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                callbacks, self._pending_callbacks = self._pending_callbacks, []
                for fn in callbacks:
                    fn()
                    self.committed_callbacks += 1

    def on_commit(self, fn) -> None:
        if self._depth == 0:
            fn()
            self.committed_callbacks += 1
            return
        self._pending_callbacks.append(fn)

    # ---------------- COURSES ----------------
    def get_course(self, course_id, *, for_update: bool = False):
        if for_update:
            self.lock_log.append(("course", str(course_id)))
        return self.courses.get(str(course_id))

    def count_attended(self, course) -> int:
        return self.attended.get(str(course.pk), 0)

    def get_active_pricing(self, *, organization_id, course_type_id):
        return self.pricing.get((str(organization_id), str(course_type_id)))

    def save_course(self, course, *, fields):
        self.courses[str(course.pk)] = course

    def billable_courses(self):
        return [
            c
            for c in self.courses.values()
            if c.status == Course.STATUS_COMPLETED and not c.invoiced
        ]

    # ---------------- INVOICES ----------------
    def get_invoice(self, invoice_id, *, for_update: bool = False):
        if for_update:
            self.lock_log.append(("invoice", str(invoice_id)))
        return self.invoices.get(str(invoice_id))

    def create_invoice(self, **fields):
        return self.add_invoice(Invoice(**fields))

    def save_invoice(self, invoice, *, fields):
        self.invoices[str(invoice.pk)] = invoice

    # ---------------- PAYMENTS ----------------
    def get_payment(self, payment_id, *, for_update: bool = False):
        if for_update:
            self.lock_log.append(("payment", str(payment_id)))
        return self.payments.get(str(payment_id))

    def list_invoice_payments(self, invoice_id):
        return sorted(
            (p for p in self.payments.values() if str(p.invoice_id) == str(invoice_id)),
            key=lambda p: p.submitted_at,
        )

    def create_payment(self, **fields):
        payment = Payment(**fields)
        self.payments[str(payment.pk)] = payment
        return payment

    def save_payment(self, payment, *, fields):
        self.payments[str(payment.pk)] = payment

    def payments_with_status(self, statuses):
        return sorted(
            (p for p in self.payments.values() if p.status in set(statuses)),
            key=lambda p: p.submitted_at,
        )
