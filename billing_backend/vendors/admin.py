# vendors/admin.py

from django.contrib import admin

from vendors.models import Vendor, VendorInvoice, VendorPayment


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("name", "contact_email", "user", "is_active")
    search_fields = ("name", "contact_email")
    list_filter = ("is_active",)


@admin.register(VendorInvoice)
class VendorInvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "vendor", "total", "status", "invoice_date", "paid_at")
    # Workflow fields change only through vendors.services.workflow_service
    readonly_fields = (
        "status",
        "approved_by",
        "approved_at",
        "rejected_by",
        "rejected_at",
        "sent_to_accounting_at",
        "paid_at",
        "submitted_by",
        "created_at",
        "updated_at",
    )
    search_fields = ("invoice_number", "vendor__name")
    list_filter = ("status",)


@admin.register(VendorPayment)
class VendorPaymentAdmin(admin.ModelAdmin):
    list_display = ("vendor_invoice", "amount", "payment_method", "payment_date", "processed_by")
    readonly_fields = (
        "vendor_invoice",
        "amount",
        "payment_date",
        "payment_method",
        "reference_number",
        "status",
        "processed_by",
        "processed_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
