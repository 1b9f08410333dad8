# vendors/api/views.py

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status

from billing.api.responses import BillingAPIView, success_response
from permissions.roles import (
    CAP_VENDOR_ACCOUNTING,
    CAP_VENDOR_ADMIN_REVIEW,
    CAP_VENDOR_INVOICE_SUBMIT,
    CAP_VENDOR_INVOICE_VIEW,
)
from vendors.api.serializers import (
    AccountingRejectSerializer,
    AdminReviewSerializer,
    VendorInvoiceCreateSerializer,
    VendorInvoiceSerializer,
    VendorPaymentCreateSerializer,
    VendorPaymentSerializer,
)
from vendors.models import VendorInvoice
from vendors.services.workflow_service import (
    accounting_reject,
    admin_review,
    record_vendor_payment,
    submit_vendor_invoice,
    vendor_invoice_summary,
    vendor_invoices_for_actor,
)


def _vendor_invoice_payload(vendor_invoice):
    data = VendorInvoiceSerializer(vendor_invoice).data
    data["summary"] = vendor_invoice_summary(vendor_invoice=vendor_invoice)
    return data


class VendorInvoiceListCreateView(BillingAPIView):
    required_capabilities = {
        "GET": CAP_VENDOR_INVOICE_VIEW,
        "POST": CAP_VENDOR_INVOICE_SUBMIT,
    }

    @extend_schema(
        tags=["vendors"],
        parameters=[
            OpenApiParameter(
                name="status",
                required=False,
                type=str,
                enum=list(VendorInvoice.Status.values),
            )
        ],
        responses=VendorInvoiceSerializer(many=True),
    )
    def get(self, request):
        invoices = vendor_invoices_for_actor(
            actor=request.user, status=request.query_params.get("status") or None
        )
        return success_response(VendorInvoiceSerializer(invoices, many=True).data)

    @extend_schema(
        tags=["vendors"],
        request=VendorInvoiceCreateSerializer,
        responses={201: VendorInvoiceSerializer},
    )
    def post(self, request):
        s = VendorInvoiceCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data

        vendor_invoice = submit_vendor_invoice(
            vendor_id=v.get("vendor_id"),
            invoice_number=v["invoice_number"],
            description=v.get("description", ""),
            total=v["total"],
            invoice_date=v.get("invoice_date"),
            due_date=v.get("due_date"),
            actor=request.user,
        )
        return success_response(
            VendorInvoiceSerializer(vendor_invoice).data,
            http_status=status.HTTP_201_CREATED,
        )


class VendorInvoiceAdminReviewView(BillingAPIView):
    required_capability = CAP_VENDOR_ADMIN_REVIEW

    @extend_schema(tags=["vendors"], request=AdminReviewSerializer, responses=VendorInvoiceSerializer)
    def post(self, request, vendor_invoice_id):
        s = AdminReviewSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        vendor_invoice = admin_review(
            vendor_invoice_id=vendor_invoice_id,
            action=s.validated_data["action"],
            notes=s.validated_data.get("notes", ""),
            actor=request.user,
        )
        return success_response(_vendor_invoice_payload(vendor_invoice))


class VendorInvoiceAccountingRejectView(BillingAPIView):
    required_capability = CAP_VENDOR_ACCOUNTING

    @extend_schema(tags=["vendors"], request=AccountingRejectSerializer, responses=VendorInvoiceSerializer)
    def post(self, request, vendor_invoice_id):
        s = AccountingRejectSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        vendor_invoice = accounting_reject(
            vendor_invoice_id=vendor_invoice_id,
            notes=s.validated_data["notes"],
            actor=request.user,
        )
        return success_response(_vendor_invoice_payload(vendor_invoice))


class VendorPaymentCreateView(BillingAPIView):
    required_capability = CAP_VENDOR_ACCOUNTING

    @extend_schema(
        tags=["vendors"],
        request=VendorPaymentCreateSerializer,
        responses={201: VendorPaymentSerializer},
    )
    def post(self, request, vendor_invoice_id):
        s = VendorPaymentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data

        result = record_vendor_payment(
            vendor_invoice_id=vendor_invoice_id,
            amount=v["amount"],
            payment_method=v["payment_method"],
            payment_date=v.get("payment_date"),
            reference_number=v.get("reference_number", ""),
            notes=v.get("notes", ""),
            actor=request.user,
        )
        return success_response(
            {
                "payment": VendorPaymentSerializer(result.payment).data,
                "vendor_invoice_status": result.vendor_invoice.status,
                "balance": result.balance.as_dict(),
            },
            http_status=status.HTTP_201_CREATED,
        )
