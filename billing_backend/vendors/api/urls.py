# vendors/api/urls.py

from django.urls import path

from vendors.api.views import (
    VendorInvoiceAccountingRejectView,
    VendorInvoiceAdminReviewView,
    VendorInvoiceListCreateView,
    VendorPaymentCreateView,
)

app_name = "vendors"

urlpatterns = [
    path("invoices/", VendorInvoiceListCreateView.as_view(), name="vendor-invoice-list"),
    path(
        "invoices/<uuid:vendor_invoice_id>/admin-review/",
        VendorInvoiceAdminReviewView.as_view(),
        name="vendor-invoice-admin-review",
    ),
    path(
        "invoices/<uuid:vendor_invoice_id>/accounting-reject/",
        VendorInvoiceAccountingRejectView.as_view(),
        name="vendor-invoice-accounting-reject",
    ),
    path(
        "invoices/<uuid:vendor_invoice_id>/payments/",
        VendorPaymentCreateView.as_view(),
        name="vendor-invoice-payments",
    ),
]
