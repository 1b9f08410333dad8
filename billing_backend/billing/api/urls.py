# billing/api/urls.py

from django.urls import path

from billing.api.views import (
    BillingQueueView,
    CourseReadinessView,
    InvoiceCancelView,
    InvoiceDetailView,
    InvoiceListCreateView,
    InvoicePaymentsView,
    InvoicePostToOrganizationView,
    InvoiceVoidView,
    PaymentReverseView,
    PaymentVerifyView,
    PendingVerificationsView,
    VerifiedPaymentsView,
)

app_name = "billing"

urlpatterns = [
    path("courses/<uuid:course_id>/readiness/", CourseReadinessView.as_view(), name="course-readiness"),
    path("queue/", BillingQueueView.as_view(), name="billing-queue"),

    path("invoices/", InvoiceListCreateView.as_view(), name="invoice-list"),
    path("invoices/<uuid:invoice_id>/", InvoiceDetailView.as_view(), name="invoice-detail"),
    path("invoices/<uuid:invoice_id>/post-to-org/", InvoicePostToOrganizationView.as_view(), name="invoice-post"),
    path("invoices/<uuid:invoice_id>/void/", InvoiceVoidView.as_view(), name="invoice-void"),
    path("invoices/<uuid:invoice_id>/cancel/", InvoiceCancelView.as_view(), name="invoice-cancel"),
    path("invoices/<uuid:invoice_id>/payments/", InvoicePaymentsView.as_view(), name="invoice-payments"),

    path("payments/pending/", PendingVerificationsView.as_view(), name="payments-pending"),
    path("payments/verified/", VerifiedPaymentsView.as_view(), name="payments-verified"),
    path("payments/<uuid:payment_id>/verify/", PaymentVerifyView.as_view(), name="payment-verify"),
    path("payments/<uuid:payment_id>/reverse/", PaymentReverseView.as_view(), name="payment-reverse"),
]
