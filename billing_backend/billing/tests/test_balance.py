# billing/tests/test_balance.py

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase

from billing.models import Invoice, Payment
from billing.services.balance_service import (
    PAYMENT_STATUS_OVERDUE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
    calculate_balance,
    derive_invoice_status,
    vendor_invoice_balance,
)
from vendors.models import VendorPayment


def _p(amount, status):
    return SimpleNamespace(amount=Decimal(amount), status=status)


class CalculateBalanceTests(SimpleTestCase):
    """
    GUARANTEES:
    - Only verified payments count toward the outstanding balance
    - Pending payments are reported separately
    - payment_status: paid > overdue > pending
    """

    due = date(2025, 3, 31)

    def test_pending_payments_do_not_reduce_outstanding(self):
        balance = calculate_balance(
            total=Decimal("113.00"),
            due_date=self.due,
            payments=[_p("50.00", Payment.Status.PENDING_VERIFICATION)],
            today=date(2025, 3, 1),
        )

        self.assertEqual(balance.verified_sum, Decimal("0.00"))
        self.assertEqual(balance.pending_sum, Decimal("50.00"))
        self.assertEqual(balance.outstanding, Decimal("113.00"))
        self.assertFalse(balance.is_fully_paid)
        self.assertEqual(balance.payment_status, PAYMENT_STATUS_PENDING)

    def test_rejected_and_reversed_payments_are_ignored(self):
        balance = calculate_balance(
            total=Decimal("113.00"),
            due_date=self.due,
            payments=[
                _p("50.00", Payment.Status.VERIFIED),
                _p("20.00", Payment.Status.REJECTED),
                _p("30.00", Payment.Status.REVERSED),
            ],
            today=date(2025, 3, 1),
        )

        self.assertEqual(balance.verified_sum, Decimal("50.00"))
        self.assertEqual(balance.pending_sum, Decimal("0.00"))
        self.assertEqual(balance.outstanding, Decimal("63.00"))

    def test_fully_verified_is_paid_even_after_due_date(self):
        balance = calculate_balance(
            total=Decimal("113.00"),
            due_date=self.due,
            payments=[
                _p("50.00", Payment.Status.VERIFIED),
                _p("63.00", Payment.Status.VERIFIED),
            ],
            today=date(2025, 6, 1),
        )

        self.assertTrue(balance.is_fully_paid)
        self.assertEqual(balance.outstanding, Decimal("0.00"))
        self.assertEqual(balance.payment_status, PAYMENT_STATUS_PAID)
        self.assertEqual(derive_invoice_status(balance), Invoice.Status.PAID)

    def test_unpaid_after_due_date_is_overdue(self):
        balance = calculate_balance(
            total=Decimal("113.00"),
            due_date=self.due,
            payments=[],
            today=date(2025, 4, 1),
        )

        self.assertEqual(balance.payment_status, PAYMENT_STATUS_OVERDUE)
        # overdue is a label; the stored status stays pending
        self.assertEqual(derive_invoice_status(balance), Invoice.Status.PENDING)

    def test_due_date_itself_is_not_overdue(self):
        balance = calculate_balance(
            total=Decimal("10.00"), due_date=self.due, payments=[], today=self.due
        )
        self.assertEqual(balance.payment_status, PAYMENT_STATUS_PENDING)

    def test_as_dict_renders_money_as_strings(self):
        balance = calculate_balance(
            total="113", due_date=None, payments=[_p("50", Payment.Status.VERIFIED)]
        )

        data = balance.as_dict()
        self.assertEqual(data["total"], "113.00")
        self.assertEqual(data["verified_sum"], "50.00")
        self.assertEqual(data["outstanding"], "63.00")
        self.assertFalse(data["is_fully_paid"])

    def test_vendor_balance_counts_processed_payments(self):
        vendor_invoice = SimpleNamespace(total=Decimal("500.00"), due_date=None)

        balance = vendor_invoice_balance(
            vendor_invoice,
            [
                _p("200.00", VendorPayment.Status.PROCESSED),
                _p("300.00", VendorPayment.Status.PROCESSED),
            ],
        )

        self.assertTrue(balance.is_fully_paid)
        self.assertEqual(balance.outstanding, Decimal("0.00"))
