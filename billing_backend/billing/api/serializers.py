# billing/api/serializers.py

from rest_framework import serializers

from billing.models import Invoice, Payment


class InvoiceSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source="organization.name", read_only=True)
    course_type_name = serializers.CharField(source="course.course_type.name", read_only=True)

    class Meta:
        model = Invoice
        fields = (
            "id",
            "invoice_number",
            "organization",
            "organization_name",
            "course",
            "course_type_name",
            "invoice_date",
            "students_billed",
            "rate_per_student",
            "base_cost",
            "tax_amount",
            "total_amount",
            "status",
            "due_date",
            "paid_date",
            "posted_to_org",
            "posted_to_org_at",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    submitted_by_email = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = (
            "id",
            "invoice",
            "invoice_number",
            "amount",
            "payment_method",
            "reference_number",
            "payment_date",
            "notes",
            "status",
            "submitted_by",
            "submitted_by_email",
            "submitted_at",
            "verified_by",
            "verified_at",
            "rejected_at",
            "reversed_by",
            "reversed_at",
        )
        read_only_fields = fields

    def get_submitted_by_email(self, obj):
        user = obj.submitted_by
        return getattr(user, "email", None) if user else None


class InvoiceCreateSerializer(serializers.Serializer):
    course_id = serializers.UUIDField()


class InvoiceUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one of: due_date, notes")
        return attrs


class InvoiceCloseSerializer(serializers.Serializer):
    reason = serializers.CharField()


class PaymentSubmitSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.CharField(max_length=50)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    payment_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class PaymentVerifySerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["approve", "reject"])
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentReverseSerializer(serializers.Serializer):
    reason = serializers.CharField()
