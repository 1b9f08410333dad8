# billing/tests/test_lifecycle.py

from django.test import SimpleTestCase

from billing.models import Invoice, Payment
from billing.services.invoice_lifecycle import (
    INVOICE_TERMINAL_STATES,
    INVOICE_TRANSITIONS,
    PAYMENT_TERMINAL_STATES,
    PAYMENT_TRANSITIONS,
    InvalidTransitionError,
    can_transition,
    validate_invoice_transition,
    validate_payment_transition,
)
from vendors.models import VendorInvoice
from vendors.services.vendor_lifecycle import validate_transition


class InvoiceTransitionTests(SimpleTestCase):
    def _invoice(self, status):
        return Invoice(invoice_number="INV-2025-000001", status=status)

    def test_terminal_states_allow_nothing(self):
        for terminal in INVOICE_TERMINAL_STATES:
            for target in Invoice.Status.values:
                self.assertFalse(
                    can_transition(
                        transitions=INVOICE_TRANSITIONS,
                        terminal=INVOICE_TERMINAL_STATES,
                        from_status=terminal,
                        to_status=target,
                    )
                )

    def test_paid_invoice_can_only_fall_back_to_pending(self):
        invoice = self._invoice(Invoice.Status.PAID)

        validate_invoice_transition(invoice=invoice, target_status=Invoice.Status.PENDING)
        with self.assertRaises(InvalidTransitionError):
            validate_invoice_transition(invoice=invoice, target_status=Invoice.Status.PAYMENT_SUBMITTED)
        with self.assertRaises(InvalidTransitionError):
            validate_invoice_transition(invoice=invoice, target_status=Invoice.Status.VOID)

    def test_open_invoice_accepts_submission(self):
        invoice = self._invoice(Invoice.Status.PENDING)
        validate_invoice_transition(invoice=invoice, target_status=Invoice.Status.PAYMENT_SUBMITTED)


class PaymentTransitionTests(SimpleTestCase):
    def test_pending_payment_moves_to_verified_or_rejected(self):
        payment = Payment(status=Payment.Status.PENDING_VERIFICATION)

        validate_payment_transition(payment=payment, target_status=Payment.Status.VERIFIED)
        validate_payment_transition(payment=payment, target_status=Payment.Status.REJECTED)
        with self.assertRaises(InvalidTransitionError):
            validate_payment_transition(payment=payment, target_status=Payment.Status.REVERSED)

    def test_only_verified_payment_can_be_reversed(self):
        payment = Payment(status=Payment.Status.VERIFIED)
        validate_payment_transition(payment=payment, target_status=Payment.Status.REVERSED)

    def test_rejected_and_reversed_are_final(self):
        for status in PAYMENT_TERMINAL_STATES:
            for target in Payment.Status.values:
                self.assertFalse(
                    can_transition(
                        transitions=PAYMENT_TRANSITIONS,
                        terminal=PAYMENT_TERMINAL_STATES,
                        from_status=status,
                        to_status=target,
                    )
                )


class VendorInvoiceTransitionTests(SimpleTestCase):
    def test_admin_stage_cannot_jump_to_paid(self):
        vi = VendorInvoice(invoice_number="V-1", status=VendorInvoice.Status.SUBMITTED_TO_ADMIN)

        with self.assertRaises(InvalidTransitionError):
            validate_transition(vendor_invoice=vi, target_status=VendorInvoice.Status.PAID)

    def test_rejected_vendor_invoice_is_final(self):
        vi = VendorInvoice(invoice_number="V-1", status=VendorInvoice.Status.REJECTED_BY_ADMIN)

        with self.assertRaises(InvalidTransitionError):
            validate_transition(
                vendor_invoice=vi, target_status=VendorInvoice.Status.SUBMITTED_TO_ACCOUNTING
            )
