# billing/admin.py

from django.contrib import admin

from billing.models import Invoice, Payment


# ======================================================
# INVOICE ADMIN
# ======================================================


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    fields = ("amount", "payment_method", "reference_number", "status", "submitted_at", "verified_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "organization",
        "status",
        "total_amount",
        "due_date",
        "paid_date",
        "posted_to_org",
    )
    # Money and status are owned by the billing services.
    readonly_fields = (
        "invoice_number",
        "organization",
        "course",
        "students_billed",
        "rate_per_student",
        "base_cost",
        "tax_amount",
        "total_amount",
        "status",
        "paid_date",
        "posted_to_org",
        "posted_to_org_at",
        "created_by",
        "created_at",
        "updated_at",
    )
    search_fields = ("invoice_number", "organization__name")
    list_filter = ("status", "posted_to_org", "invoice_date")
    inlines = [PaymentInline]

    def has_delete_permission(self, request, obj=None):
        return False


# ======================================================
# PAYMENT ADMIN
# ======================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "invoice",
        "amount",
        "payment_method",
        "status",
        "submitted_at",
        "verified_at",
    )
    readonly_fields = (
        "invoice",
        "amount",
        "payment_method",
        "reference_number",
        "payment_date",
        "notes",
        "status",
        "submitted_by",
        "submitted_at",
        "verified_by",
        "verified_at",
        "rejected_at",
        "reversed_by",
        "reversed_at",
    )
    search_fields = ("invoice__invoice_number", "reference_number")
    list_filter = ("status", "payment_method")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
