# billing/management/commands/validate_billing_integrity.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from billing.models import Invoice, Payment
from billing.services.balance_service import (
    derive_invoice_status,
    invoice_balance,
    vendor_invoice_balance,
)
from vendors.models import VendorInvoice


class Command(BaseCommand):
    help = "Validate billing integrity (no overpayment, invoice status matches payments, vendor payables)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any error is found.",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))

        self.stdout.write(self.style.MIGRATE_HEADING("Billing Integrity Validation"))

        invoices = list(Invoice.objects.prefetch_related("payments").order_by("created_at"))
        vendor_invoices = list(VendorInvoice.objects.prefetch_related("payments").order_by("created_at"))

        self.stdout.write(f"Invoices:        {len(invoices)}")
        self.stdout.write(f"Vendor invoices: {len(vendor_invoices)}")
        self.stdout.write("")

        errors = 0

        # -----------------------------
        # 1) Verified sum never exceeds total
        # -----------------------------
        overpaid = []
        status_mismatch = []
        orphan_submitted = []

        for invoice in invoices:
            payments = list(invoice.payments.all())
            balance = invoice_balance(invoice, payments)

            if balance.verified_sum > balance.total:
                overpaid.append((invoice.invoice_number, balance.verified_sum, balance.total))

            # -----------------------------
            # 2) Settled status follows the verified sum
            # -----------------------------
            if invoice.status in (Invoice.Status.PENDING, Invoice.Status.PAID):
                expected = derive_invoice_status(balance)
                if invoice.status != expected:
                    status_mismatch.append((invoice.invoice_number, invoice.status, expected))
            elif invoice.status == Invoice.Status.PAYMENT_SUBMITTED:
                if not any(p.status == Payment.Status.PENDING_VERIFICATION for p in payments):
                    orphan_submitted.append(invoice.invoice_number)

        if overpaid:
            errors += len(overpaid)
            self.stderr.write(self.style.ERROR(f"[FAIL] Overpaid invoices: {len(overpaid)}"))
            for number, verified, total in overpaid[:10]:
                self.stderr.write(f"  invoice={number} verified={verified} total={total}")
        else:
            self.stdout.write(self.style.SUCCESS("[OK] No invoice has verified payments above its total"))

        if status_mismatch:
            errors += len(status_mismatch)
            self.stderr.write(self.style.ERROR(f"[FAIL] Invoice status out of sync: {len(status_mismatch)}"))
            for number, actual, expected in status_mismatch[:10]:
                self.stderr.write(f"  invoice={number} status={actual} expected={expected}")

        if orphan_submitted:
            errors += len(orphan_submitted)
            self.stderr.write(
                self.style.ERROR(
                    f"[FAIL] payment_submitted invoices without pending payments: {len(orphan_submitted)}"
                )
            )
            self.stderr.write("  Examples: " + ", ".join(orphan_submitted[:10]))

        if not status_mismatch and not orphan_submitted:
            self.stdout.write(self.style.SUCCESS("[OK] Invoice statuses match their payments"))

        # -----------------------------
        # 3) Vendor payables
        # -----------------------------
        vendor_overpaid = []
        vendor_mismatch = []

        for vendor_invoice in vendor_invoices:
            balance = vendor_invoice_balance(vendor_invoice, list(vendor_invoice.payments.all()))

            if balance.verified_sum > balance.total:
                vendor_overpaid.append((vendor_invoice.invoice_number, balance.verified_sum, balance.total))

            is_paid = vendor_invoice.status == VendorInvoice.Status.PAID
            if is_paid != balance.is_fully_paid:
                vendor_mismatch.append((vendor_invoice.invoice_number, vendor_invoice.status, balance.verified_sum))

        if vendor_overpaid:
            errors += len(vendor_overpaid)
            self.stderr.write(self.style.ERROR(f"[FAIL] Overpaid vendor invoices: {len(vendor_overpaid)}"))
            for number, paid, total in vendor_overpaid[:10]:
                self.stderr.write(f"  vendor_invoice={number} processed={paid} total={total}")

        if vendor_mismatch:
            errors += len(vendor_mismatch)
            self.stderr.write(self.style.ERROR(f"[FAIL] Vendor invoice status out of sync: {len(vendor_mismatch)}"))
            for number, st, paid in vendor_mismatch[:10]:
                self.stderr.write(f"  vendor_invoice={number} status={st} processed={paid}")

        if not vendor_overpaid and not vendor_mismatch:
            self.stdout.write(self.style.SUCCESS("[OK] Vendor payables look good"))

        self.stdout.write("")
        if errors == 0:
            self.stdout.write(self.style.SUCCESS("VALIDATION PASSED"))
        else:
            self.stderr.write(self.style.ERROR(f"VALIDATION FOUND ISSUES: {errors} problem(s)"))

        return self._exit(strict and errors > 0)

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
