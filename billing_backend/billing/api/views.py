# billing/api/views.py

"""
Billing HTTP surface. Views only parse input, call one service function and
wrap the result; every business rule lives in billing.services.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status

from billing.api.filters import InvoiceFilter
from billing.api.responses import BillingAPIView, success_response
from billing.api.serializers import (
    InvoiceCloseSerializer,
    InvoiceCreateSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    PaymentReverseSerializer,
    PaymentSerializer,
    PaymentSubmitSerializer,
    PaymentVerifySerializer,
)
from billing.models import Invoice
from billing.services.guards import scope_invoices_for_actor
from billing.services.invoice_service import (
    InvoiceUpdate,
    cancel_invoice,
    create_invoice,
    get_invoice_for_actor,
    get_invoice_summary,
    post_invoice_to_organization,
    update_invoice,
    void_invoice,
)
from billing.services.payment_service import payment_history, submit_payment
from billing.services.readiness_service import billing_queue, validate_billing_readiness
from billing.services.verification_service import (
    pending_verifications,
    reverse_payment,
    verified_payments,
    verify_payment,
)
from permissions.roles import (
    CAP_BILLING_READINESS_VIEW,
    CAP_INVOICE_CREATE,
    CAP_INVOICE_MANAGE,
    CAP_INVOICE_VIEW,
    CAP_PAYMENT_REVERSE,
    CAP_PAYMENT_SUBMIT,
    CAP_PAYMENT_VERIFY,
)


def _invoice_payload(invoice):
    data = InvoiceSerializer(invoice).data
    data["summary"] = get_invoice_summary(invoice=invoice)
    return data


# ============================================================
# READINESS
# ============================================================


class CourseReadinessView(BillingAPIView):
    required_capability = CAP_BILLING_READINESS_VIEW

    @extend_schema(tags=["billing"])
    def get(self, request, course_id):
        result = validate_billing_readiness(course_id=course_id)
        return success_response(result.as_dict())


class BillingQueueView(BillingAPIView):
    required_capability = CAP_BILLING_READINESS_VIEW

    @extend_schema(tags=["billing"])
    def get(self, request):
        return success_response([r.as_dict() for r in billing_queue()])


# ============================================================
# INVOICES
# ============================================================


class InvoiceListCreateView(BillingAPIView):
    required_capabilities = {"GET": CAP_INVOICE_VIEW, "POST": CAP_INVOICE_CREATE}
    serializer_class = InvoiceSerializer
    filterset_class = InvoiceFilter

    def get_queryset(self):
        qs = Invoice.objects.select_related("organization", "course", "course__course_type")
        return scope_invoices_for_actor(qs, self.request.user).order_by("-invoice_date", "-created_at")

    @extend_schema(tags=["billing"], responses=InvoiceSerializer(many=True))
    def get(self, request):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        if page is not None:
            return success_response(
                self.get_paginated_response(InvoiceSerializer(page, many=True).data).data
            )
        return success_response(InvoiceSerializer(qs, many=True).data)

    @extend_schema(
        tags=["billing"],
        request=InvoiceCreateSerializer,
        responses={201: InvoiceSerializer},
    )
    def post(self, request):
        s = InvoiceCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        invoice = create_invoice(course_id=s.validated_data["course_id"], actor=request.user)
        return success_response(
            InvoiceSerializer(invoice).data, http_status=status.HTTP_201_CREATED
        )


class InvoiceDetailView(BillingAPIView):
    required_capabilities = {"GET": CAP_INVOICE_VIEW, "PATCH": CAP_INVOICE_MANAGE}

    @extend_schema(tags=["billing"], responses=InvoiceSerializer)
    def get(self, request, invoice_id):
        invoice = get_invoice_for_actor(invoice_id=invoice_id, actor=request.user)
        return success_response(_invoice_payload(invoice))

    @extend_schema(tags=["billing"], request=InvoiceUpdateSerializer, responses=InvoiceSerializer)
    def patch(self, request, invoice_id):
        s = InvoiceUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)

        invoice = update_invoice(
            invoice_id=invoice_id,
            changes=InvoiceUpdate(
                due_date=s.validated_data.get("due_date"),
                notes=s.validated_data.get("notes"),
            ),
            actor=request.user,
        )
        return success_response(_invoice_payload(invoice))


class InvoicePostToOrganizationView(BillingAPIView):
    required_capability = CAP_INVOICE_MANAGE

    @extend_schema(tags=["billing"], request=None, responses=InvoiceSerializer)
    def post(self, request, invoice_id):
        invoice = post_invoice_to_organization(invoice_id=invoice_id, actor=request.user)
        return success_response(InvoiceSerializer(invoice).data)


class InvoiceVoidView(BillingAPIView):
    required_capability = CAP_INVOICE_MANAGE

    @extend_schema(tags=["billing"], request=InvoiceCloseSerializer, responses=InvoiceSerializer)
    def post(self, request, invoice_id):
        s = InvoiceCloseSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        invoice = void_invoice(
            invoice_id=invoice_id, reason=s.validated_data["reason"], actor=request.user
        )
        return success_response(InvoiceSerializer(invoice).data)


class InvoiceCancelView(BillingAPIView):
    required_capability = CAP_INVOICE_MANAGE

    @extend_schema(tags=["billing"], request=InvoiceCloseSerializer, responses=InvoiceSerializer)
    def post(self, request, invoice_id):
        s = InvoiceCloseSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        invoice = cancel_invoice(
            invoice_id=invoice_id, reason=s.validated_data["reason"], actor=request.user
        )
        return success_response(InvoiceSerializer(invoice).data)


# ============================================================
# PAYMENTS
# ============================================================


class InvoicePaymentsView(BillingAPIView):
    required_capabilities = {"GET": CAP_INVOICE_VIEW, "POST": CAP_PAYMENT_SUBMIT}

    @extend_schema(tags=["payments"], responses=PaymentSerializer(many=True))
    def get(self, request, invoice_id):
        payments = payment_history(invoice_id=invoice_id, actor=request.user)
        return success_response(PaymentSerializer(payments, many=True).data)

    @extend_schema(
        tags=["payments"],
        request=PaymentSubmitSerializer,
        responses={201: PaymentSerializer},
    )
    def post(self, request, invoice_id):
        s = PaymentSubmitSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data

        result = submit_payment(
            invoice_id=invoice_id,
            amount=v["amount"],
            payment_method=v["payment_method"],
            reference_number=v.get("reference_number", ""),
            payment_date=v.get("payment_date"),
            notes=v.get("notes", ""),
            actor=request.user,
        )

        return success_response(
            {
                "payment": PaymentSerializer(result.payment).data,
                "invoice_status": result.invoice.status,
                "remaining_balance": str(result.remaining_balance),
                "is_full_payment": result.is_full_payment,
            },
            http_status=status.HTTP_201_CREATED,
        )


class PendingVerificationsView(BillingAPIView):
    required_capability = CAP_PAYMENT_VERIFY

    @extend_schema(tags=["payments"], responses=PaymentSerializer(many=True))
    def get(self, request):
        payments = pending_verifications(actor=request.user)
        return success_response(PaymentSerializer(payments, many=True).data)


class VerifiedPaymentsView(BillingAPIView):
    required_capability = CAP_PAYMENT_VERIFY

    @extend_schema(
        tags=["payments"],
        parameters=[
            OpenApiParameter(
                name="status",
                required=False,
                type=str,
                enum=["verified", "reversed", "all"],
            )
        ],
        responses=PaymentSerializer(many=True),
    )
    def get(self, request):
        payments = verified_payments(
            actor=request.user, status=request.query_params.get("status", "all")
        )
        return success_response(PaymentSerializer(payments, many=True).data)


def _verification_payload(result):
    return {
        "payment": PaymentSerializer(result.payment).data,
        "invoice_status": result.invoice.status,
        "balance": result.balance.as_dict(),
    }


class PaymentVerifyView(BillingAPIView):
    required_capability = CAP_PAYMENT_VERIFY

    @extend_schema(tags=["payments"], request=PaymentVerifySerializer)
    def post(self, request, payment_id):
        s = PaymentVerifySerializer(data=request.data)
        s.is_valid(raise_exception=True)

        result = verify_payment(
            payment_id=payment_id,
            action=s.validated_data["action"],
            notes=s.validated_data.get("notes", ""),
            actor=request.user,
        )
        return success_response(_verification_payload(result))


class PaymentReverseView(BillingAPIView):
    required_capability = CAP_PAYMENT_REVERSE

    @extend_schema(tags=["payments"], request=PaymentReverseSerializer)
    def post(self, request, payment_id):
        s = PaymentReverseSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        result = reverse_payment(
            payment_id=payment_id, reason=s.validated_data["reason"], actor=request.user
        )
        return success_response(_verification_payload(result))
