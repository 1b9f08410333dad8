# vendors/tests/test_workflow.py

from __future__ import annotations

from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from billing.services.exceptions import (
    BillingConflictError,
    BillingPermissionError,
    BillingValidationError,
)
from billing.tests.factories import make_user
from permissions.roles import ROLE_ACCOUNTANT, ROLE_ADMIN, ROLE_VENDOR
from vendors.models import Vendor, VendorInvoice, VendorPayment
from vendors.services.workflow_service import (
    accounting_reject,
    admin_review,
    record_vendor_payment,
    submit_vendor_invoice,
    vendor_invoices_for_actor,
)

Status = VendorInvoice.Status


class VendorWorkflowTests(TestCase):
    """
    GUARANTEES:
    - submitted_to_admin -> submitted_to_accounting -> paid
    - Σ processed payments never exceeds the total
    - Rejections require notes and are terminal
    """

    def setUp(self):
        self.admin = make_user(ROLE_ADMIN)
        self.accountant = make_user(ROLE_ACCOUNTANT, first_name="Alice", last_name="Accountant")
        self.vendor_user = make_user(ROLE_VENDOR)
        self.vendor = Vendor.objects.create(name="Acme Catering", user=self.vendor_user)

    def _submit(self, number="V-100", total="500.00"):
        return submit_vendor_invoice(invoice_number=number, total=total, actor=self.vendor_user)

    def _approved(self, number="V-100", total="500.00"):
        vendor_invoice = self._submit(number, total)
        return admin_review(vendor_invoice_id=vendor_invoice.pk, action="approve", actor=self.admin)

    # ======================================================
    # SUBMIT
    # ======================================================

    def test_vendor_submits_for_own_profile(self):
        vendor_invoice = self._submit()

        self.assertEqual(vendor_invoice.vendor_id, self.vendor.pk)
        self.assertEqual(vendor_invoice.status, Status.SUBMITTED_TO_ADMIN)
        self.assertEqual(vendor_invoice.total, Decimal("500.00"))
        self.assertEqual(vendor_invoice.submitted_by, self.vendor_user)

    def test_vendor_without_profile_cannot_submit(self):
        with self.assertRaises(BillingPermissionError):
            submit_vendor_invoice(invoice_number="V-1", total="10.00", actor=make_user(ROLE_VENDOR))

    def test_duplicate_invoice_number_for_vendor(self):
        self._submit("V-100")

        with self.assertRaises(BillingConflictError):
            self._submit("v-100")

        self.assertEqual(VendorInvoice.objects.count(), 1)

    def test_total_must_be_positive(self):
        with self.assertRaises(BillingValidationError):
            self._submit(total="0")

    def test_non_finite_total_is_a_validation_error(self):
        for total in ("NaN", "Infinity"):
            with self.assertRaisesMessage(BillingValidationError, "Total must be a valid number"):
                self._submit(total=total)
        self.assertFalse(VendorInvoice.objects.exists())

    def test_non_finite_payment_amount_is_a_validation_error(self):
        vendor_invoice = self._approved()

        with self.assertRaisesMessage(BillingValidationError, "Amount must be a valid number"):
            record_vendor_payment(
                vendor_invoice_id=vendor_invoice.pk, amount="NaN", payment_method="bank", actor=self.accountant
            )
        self.assertFalse(VendorPayment.objects.exists())

    def test_accountant_cannot_submit(self):
        with self.assertRaises(BillingPermissionError):
            submit_vendor_invoice(
                vendor_id=self.vendor.pk, invoice_number="V-1", total="10.00", actor=self.accountant
            )

    # ======================================================
    # ADMIN REVIEW
    # ======================================================

    def test_admin_reject_requires_notes(self):
        vendor_invoice = self._submit()

        with self.assertRaises(BillingValidationError):
            admin_review(vendor_invoice_id=vendor_invoice.pk, action="reject", actor=self.admin)

        rejected = admin_review(
            vendor_invoice_id=vendor_invoice.pk, action="reject", notes="Missing receipt", actor=self.admin
        )
        self.assertEqual(rejected.status, Status.REJECTED_BY_ADMIN)
        self.assertIn("Missing receipt", rejected.admin_notes)

        with self.assertRaises(BillingConflictError):
            admin_review(vendor_invoice_id=vendor_invoice.pk, action="approve", actor=self.admin)

    def test_approve_sends_to_accounting(self):
        vendor_invoice = self._approved()

        self.assertEqual(vendor_invoice.status, Status.SUBMITTED_TO_ACCOUNTING)
        self.assertEqual(vendor_invoice.approved_by, self.admin)
        self.assertIsNotNone(vendor_invoice.sent_to_accounting_at)

    def test_accountant_cannot_admin_review(self):
        vendor_invoice = self._submit()

        with self.assertRaises(BillingPermissionError):
            admin_review(vendor_invoice_id=vendor_invoice.pk, action="approve", actor=self.accountant)

    # ======================================================
    # ACCOUNTING
    # ======================================================

    def test_partial_payments_until_paid(self):
        vendor_invoice = self._approved()

        first = record_vendor_payment(
            vendor_invoice_id=vendor_invoice.pk, amount="200.00", payment_method="Bank", actor=self.accountant
        )
        self.assertEqual(first.vendor_invoice.status, Status.SUBMITTED_TO_ACCOUNTING)
        self.assertEqual(first.balance.outstanding, Decimal("300.00"))
        self.assertEqual(first.payment.status, VendorPayment.Status.PROCESSED)

        second = record_vendor_payment(
            vendor_invoice_id=vendor_invoice.pk, amount="300.00", payment_method="bank", actor=self.accountant
        )
        self.assertEqual(second.vendor_invoice.status, Status.PAID)
        self.assertTrue(second.balance.is_fully_paid)
        self.assertIsNotNone(second.vendor_invoice.paid_at)

        with self.assertRaises(BillingValidationError):
            record_vendor_payment(
                vendor_invoice_id=vendor_invoice.pk, amount="1.00", payment_method="bank", actor=self.accountant
            )

        self.assertEqual(VendorPayment.objects.filter(vendor_invoice=vendor_invoice).count(), 2)

    def test_payment_cannot_exceed_outstanding(self):
        vendor_invoice = self._approved()

        with self.assertRaises(BillingValidationError):
            record_vendor_payment(
                vendor_invoice_id=vendor_invoice.pk, amount="500.01", payment_method="bank", actor=self.accountant
            )

        self.assertFalse(VendorPayment.objects.exists())

    def test_payment_requires_admin_approval(self):
        vendor_invoice = self._submit()

        with self.assertRaises(BillingConflictError):
            record_vendor_payment(
                vendor_invoice_id=vendor_invoice.pk, amount="10.00", payment_method="bank", actor=self.accountant
            )

    def test_accounting_reject(self):
        vendor_invoice = self._approved()

        with self.assertRaises(BillingValidationError):
            accounting_reject(vendor_invoice_id=vendor_invoice.pk, notes="  ", actor=self.accountant)

        rejected = accounting_reject(
            vendor_invoice_id=vendor_invoice.pk, notes="Duplicate of V-099", actor=self.accountant
        )
        self.assertEqual(rejected.status, Status.REJECTED_BY_ACCOUNTANT)
        self.assertEqual(rejected.accounting_notes, "Rejected by Alice Accountant: Duplicate of V-099")

    def test_accounting_reject_blocked_after_payment(self):
        vendor_invoice = self._approved()
        record_vendor_payment(
            vendor_invoice_id=vendor_invoice.pk, amount="100.00", payment_method="bank", actor=self.accountant
        )

        with self.assertRaises(BillingValidationError):
            accounting_reject(vendor_invoice_id=vendor_invoice.pk, notes="Too late", actor=self.accountant)

    def test_accounting_reject_before_admin_review(self):
        vendor_invoice = self._submit()

        with self.assertRaises(BillingConflictError):
            accounting_reject(vendor_invoice_id=vendor_invoice.pk, notes="Not yet", actor=self.accountant)

    # ======================================================
    # READ SCOPE
    # ======================================================

    def test_vendor_sees_only_own_invoices(self):
        own = self._submit()
        other = Vendor.objects.create(name="Other Supplies")
        submit_vendor_invoice(vendor_id=other.pk, invoice_number="O-1", total="20.00", actor=self.admin)

        self.assertEqual([v.pk for v in vendor_invoices_for_actor(actor=self.vendor_user)], [own.pk])
        self.assertEqual(len(vendor_invoices_for_actor(actor=self.accountant)), 2)

    def test_unknown_status_filter(self):
        with self.assertRaises(BillingValidationError):
            vendor_invoices_for_actor(actor=self.accountant, status="bogus")


class VendorAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()

        self.admin = make_user(ROLE_ADMIN)
        self.accountant = make_user(ROLE_ACCOUNTANT)
        self.vendor_user = make_user(ROLE_VENDOR)
        Vendor.objects.create(name="Acme Catering", user=self.vendor_user)

        self.list_url = reverse("vendors:vendor-invoice-list")

    def test_submit_review_and_pay(self):
        self.client.force_authenticate(self.vendor_user)
        response = self.client.post(
            self.list_url, {"invoice_number": "V-7", "total": "500.00"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["status"], Status.SUBMITTED_TO_ADMIN)
        vendor_invoice_id = response.data["data"]["id"]

        # vendor cannot approve its own invoice
        review_url = reverse("vendors:vendor-invoice-admin-review", args=[vendor_invoice_id])
        response = self.client.post(review_url, {"action": "approve"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.post(review_url, {"action": "approve"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["summary"]["balance"]["outstanding"], "500.00")

        self.client.force_authenticate(self.accountant)
        payments_url = reverse("vendors:vendor-invoice-payments", args=[vendor_invoice_id])
        response = self.client.post(
            payments_url, {"amount": "500.00", "payment_method": "bank"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["vendor_invoice_status"], Status.PAID)
        self.assertEqual(response.data["data"]["balance"]["outstanding"], "0.00")

        response = self.client.post(
            payments_url, {"amount": "1.00", "payment_method": "bank"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["message"], "Vendor invoice is already paid")

    def test_accounting_reject_requires_notes(self):
        self.client.force_authenticate(self.accountant)
        vendor_invoice = submit_vendor_invoice(invoice_number="V-8", total="50.00", actor=self.vendor_user)
        admin_review(vendor_invoice_id=vendor_invoice.pk, action="approve", actor=self.admin)

        url = reverse("vendors:vendor-invoice-accounting-reject", args=[vendor_invoice.pk])
        response = self.client.post(url, {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

    def test_list_filters_by_status(self):
        submit_vendor_invoice(invoice_number="V-9", total="50.00", actor=self.vendor_user)
        self.client.force_authenticate(self.accountant)

        response = self.client.get(self.list_url, {"status": Status.PAID})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"], [])

    def test_unknown_vendor_invoice(self):
        self.client.force_authenticate(self.admin)
        url = reverse(
            "vendors:vendor-invoice-admin-review", args=["00000000-0000-0000-0000-000000000000"]
        )

        response = self.client.post(url, {"action": "approve"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
