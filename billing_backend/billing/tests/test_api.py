# billing/tests/test_api.py

from __future__ import annotations

import uuid
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from billing.models import Invoice, Payment
from billing.tests.factories import make_course, make_invoice, make_organization, make_user
from permissions.roles import ROLE_ACCOUNTANT, ROLE_HR, ROLE_ORGANIZATION


class BillingAPITests(TestCase):
    """
    Billing endpoints end-to-end.

    GUARANTEES:
    - Every response uses the success / error envelope
    - Capabilities are enforced per HTTP method
    - Organization users never see other organizations' invoices
    """

    def setUp(self):
        self.client = APIClient()

        self.org = make_organization()
        self.org_user = make_user(ROLE_ORGANIZATION, organization=self.org)
        self.accountant = make_user(ROLE_ACCOUNTANT, first_name="Alice", last_name="Accountant")

        self.course = make_course(organization=self.org, attended=1, price=Decimal("100.00"))

        self.invoices_url = reverse("billing:invoice-list")

    def _payments_url(self, invoice_id):
        return reverse("billing:invoice-payments", args=[invoice_id])

    def _verify_url(self, payment_id):
        return reverse("billing:payment-verify", args=[payment_id])

    # ======================================================
    # END-TO-END
    # ======================================================

    def test_invoice_payment_and_verification_flow(self):
        self.client.force_authenticate(self.accountant)
        response = self.client.post(self.invoices_url, {"course_id": str(self.course.pk)}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        invoice_id = response.data["data"]["id"]
        self.assertEqual(response.data["data"]["total_amount"], "113.00")

        response = self.client.post(reverse("billing:invoice-post", args=[invoice_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        # organization pays part of it
        self.client.force_authenticate(self.org_user)
        response = self.client.post(
            self._payments_url(invoice_id),
            {"amount": "50.00", "payment_method": "bank_transfer", "reference_number": "TRX-1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["invoice_status"], Invoice.Status.PAYMENT_SUBMITTED)
        self.assertEqual(response.data["data"]["remaining_balance"], "63.00")
        self.assertFalse(response.data["data"]["is_full_payment"])
        payment_id = response.data["data"]["payment"]["id"]

        # accounting approves
        self.client.force_authenticate(self.accountant)
        response = self.client.post(self._verify_url(payment_id), {"action": "approve"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["invoice_status"], Invoice.Status.PENDING)
        self.assertEqual(response.data["data"]["balance"]["outstanding"], "63.00")

        # overpayment against the remaining 63.00
        self.client.force_authenticate(self.org_user)
        response = self.client.post(
            self._payments_url(invoice_id),
            {"amount": "70.00", "payment_method": "bank_transfer"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

        # payment history
        response = self.client.get(self._payments_url(invoice_id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(response.data["data"][0]["status"], Payment.Status.VERIFIED)

    # ======================================================
    # AUTH / PERMISSIONS
    # ======================================================

    def test_unauthenticated_request_is_rejected(self):
        response = self.client.get(self.invoices_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"]["code"], "AUTHENTICATION_REQUIRED")

    def test_organization_user_cannot_create_invoice(self):
        self.client.force_authenticate(self.org_user)

        response = self.client.post(self.invoices_url, {"course_id": str(self.course.pk)}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"]["code"], "INSUFFICIENT_PERMISSIONS")
        self.assertFalse(Invoice.objects.exists())

    def test_organization_user_cannot_verify_payments(self):
        invoice = make_invoice(organization=self.org)
        payment = Payment.objects.create(invoice=invoice, amount=Decimal("10.00"), payment_method="bank")
        self.client.force_authenticate(self.org_user)

        response = self.client.post(self._verify_url(payment.pk), {"action": "approve"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.PENDING_VERIFICATION)

    def test_role_without_billing_capabilities(self):
        self.client.force_authenticate(make_user(ROLE_HR))

        response = self.client.get(self.invoices_url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_organizations_invoice_is_not_found(self):
        foreign = make_invoice(organization=make_organization(name="Contoso"), posted=True)
        self.client.force_authenticate(self.org_user)

        response = self.client.get(reverse("billing:invoice-detail", args=[foreign.pk]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "RESOURCE_NOT_FOUND")

    # ======================================================
    # INVOICES
    # ======================================================

    def test_list_is_scoped_and_filterable(self):
        own = make_invoice(organization=self.org, posted=True)
        make_invoice(organization=self.org)
        make_invoice(organization=make_organization(name="Contoso"), posted=True)
        cancelled = make_invoice(organization=self.org, posted=True)
        Invoice.objects.filter(pk=cancelled.pk).update(status=Invoice.Status.CANCELLED)

        self.client.force_authenticate(self.org_user)
        response = self.client.get(self.invoices_url, {"status": Invoice.Status.PENDING})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [row["id"] for row in response.data["data"]["results"]]
        self.assertEqual(ids, [str(own.pk)])

    def test_unposted_invoice_is_hidden_from_organization(self):
        invoice = make_invoice(organization=self.org)
        self.client.force_authenticate(self.org_user)

        response = self.client.get(reverse("billing:invoice-detail", args=[invoice.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get(self._payments_url(invoice.pk))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(
            self._payments_url(invoice.pk),
            {"amount": "10.00", "payment_method": "bank_transfer"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Payment.objects.exists())

    def test_detail_includes_balance_summary(self):
        invoice = make_invoice(organization=self.org)
        self.client.force_authenticate(self.accountant)

        response = self.client.get(reverse("billing:invoice-detail", args=[invoice.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["summary"]["balance"]["outstanding"], "113.00")

    def test_patch_updates_notes_only(self):
        invoice = make_invoice(organization=self.org)
        self.client.force_authenticate(self.accountant)

        response = self.client.patch(
            reverse("billing:invoice-detail", args=[invoice.pk]), {"notes": "PO 4471"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice.refresh_from_db()
        self.assertEqual(invoice.notes, "PO 4471")
        self.assertEqual(invoice.total_amount, Decimal("113.00"))

    def test_invalid_payload_returns_details(self):
        self.client.force_authenticate(self.accountant)

        response = self.client.post(self.invoices_url, {"course_id": "nope"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")
        self.assertIn("course_id", response.data["error"]["details"])

    def test_not_ready_course_returns_itemized_errors(self):
        course = make_course(organization=self.org, attended=0, absent=1)
        self.client.force_authenticate(self.accountant)

        response = self.client.post(self.invoices_url, {"course_id": str(course.pk)}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["details"], ["No students are marked as attended"])

    def test_post_then_void(self):
        invoice = make_invoice(organization=self.org)
        self.client.force_authenticate(self.accountant)

        response = self.client.post(reverse("billing:invoice-post", args=[invoice.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["posted_to_org"])

        response = self.client.post(reverse("billing:invoice-post", args=[invoice.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["code"], "CONFLICT")

        response = self.client.post(
            reverse("billing:invoice-void", args=[invoice.pk]), {"reason": "Wrong organization"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], Invoice.Status.VOID)

    def test_cancel_requires_reason(self):
        invoice = make_invoice(organization=self.org)
        self.client.force_authenticate(self.accountant)

        response = self.client.post(reverse("billing:invoice-cancel", args=[invoice.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    # ======================================================
    # READINESS / QUEUES
    # ======================================================

    def test_readiness_endpoint(self):
        self.client.force_authenticate(self.accountant)

        response = self.client.get(reverse("billing:course-readiness", args=[self.course.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["isValid"])
        self.assertEqual(response.data["data"]["estimated_amount"], "100.00")

    def test_readiness_for_unknown_course(self):
        self.client.force_authenticate(self.accountant)

        response = self.client.get(reverse("billing:course-readiness", args=[uuid.uuid4()]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_billing_queue(self):
        self.client.force_authenticate(self.accountant)

        response = self.client.get(reverse("billing:billing-queue"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r["course_id"] for r in response.data["data"]], [str(self.course.pk)])

    def test_pending_and_verified_queues(self):
        invoice = make_invoice(organization=self.org)
        pending = Payment.objects.create(invoice=invoice, amount=Decimal("10.00"), payment_method="bank")
        self.client.force_authenticate(self.accountant)

        response = self.client.get(reverse("billing:payments-pending"))
        self.assertEqual([p["id"] for p in response.data["data"]], [str(pending.pk)])

        self.client.post(self._verify_url(pending.pk), {"action": "approve"}, format="json")

        response = self.client.get(reverse("billing:payments-verified"), {"status": "verified"})
        self.assertEqual([p["id"] for p in response.data["data"]], [str(pending.pk)])

        response = self.client.get(reverse("billing:payments-verified"), {"status": "bogus"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reverse_verified_payment(self):
        invoice = make_invoice(organization=self.org)
        payment = Payment.objects.create(invoice=invoice, amount=Decimal("113.00"), payment_method="bank")
        self.client.force_authenticate(self.accountant)
        self.client.post(self._verify_url(payment.pk), {"action": "approve"}, format="json")

        response = self.client.post(
            reverse("billing:payment-reverse", args=[payment.pk]),
            {"reason": "Chargeback"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["payment"]["status"], Payment.Status.REVERSED)
        self.assertEqual(response.data["data"]["invoice_status"], Invoice.Status.PENDING)

    def test_reject_requires_notes(self):
        invoice = make_invoice(organization=self.org)
        payment = Payment.objects.create(invoice=invoice, amount=Decimal("10.00"), payment_method="bank")
        self.client.force_authenticate(self.accountant)

        response = self.client.post(self._verify_url(payment.pk), {"action": "reject"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.data["error"]["message"], "Notes are required when rejecting a payment"
        )
