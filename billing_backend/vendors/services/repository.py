# vendors/services/repository.py

"""
VENDOR REPOSITORY (ORM-BACKED)

Same contract as billing.services.repository: `for_update=True` row-locks
and must run inside `atomic()`.
"""

from __future__ import annotations

from django.db import transaction

from billing.services.repository import get_or_none
from vendors.models import Vendor, VendorInvoice, VendorPayment


class VendorRepository:
    def atomic(self):
        return transaction.atomic()

    def on_commit(self, fn) -> None:
        transaction.on_commit(fn)

    # ---------------- VENDORS ----------------
    def get_vendor(self, vendor_id):
        return get_or_none(Vendor.objects.filter(is_active=True), vendor_id)

    def get_vendor_for_user(self, user):
        return Vendor.objects.filter(user_id=getattr(user, "pk", None), is_active=True).first()

    # ---------------- INVOICES ----------------
    def get_vendor_invoice(self, vendor_invoice_id, *, for_update: bool = False):
        if for_update:
            return get_or_none(VendorInvoice.objects.select_for_update(), vendor_invoice_id)
        return get_or_none(VendorInvoice.objects.select_related("vendor"), vendor_invoice_id)

    def vendor_invoice_number_taken(self, *, vendor_id, invoice_number: str) -> bool:
        return VendorInvoice.objects.filter(
            vendor_id=vendor_id, invoice_number__iexact=invoice_number
        ).exists()

    def create_vendor_invoice(self, **fields) -> VendorInvoice:
        return VendorInvoice.objects.create(**fields)

    def save_vendor_invoice(self, vendor_invoice, *, fields: list[str]) -> None:
        vendor_invoice.save(update_fields=[*fields, "updated_at"])

    def list_vendor_invoices(self, *, vendor_id=None, status=None) -> list:
        qs = VendorInvoice.objects.select_related("vendor")
        if vendor_id is not None:
            qs = qs.filter(vendor_id=vendor_id)
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by("-created_at"))

    # ---------------- PAYMENTS ----------------
    def list_vendor_payments(self, vendor_invoice_id) -> list:
        return list(
            VendorPayment.objects.filter(vendor_invoice_id=vendor_invoice_id).order_by("processed_at")
        )

    def create_vendor_payment(self, **fields) -> VendorPayment:
        return VendorPayment.objects.create(**fields)


default_repository = VendorRepository()
