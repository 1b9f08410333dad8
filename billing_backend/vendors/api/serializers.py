# vendors/api/serializers.py

from rest_framework import serializers

from vendors.models import VendorInvoice, VendorPayment


class VendorInvoiceSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)

    class Meta:
        model = VendorInvoice
        fields = "__all__"


class VendorPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = VendorPayment
        fields = "__all__"


class VendorInvoiceCreateSerializer(serializers.Serializer):
    vendor_id = serializers.UUIDField(required=False, allow_null=True)
    invoice_number = serializers.CharField(max_length=64)
    description = serializers.CharField(required=False, allow_blank=True)
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    invoice_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False, allow_null=True)


class AdminReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["approve", "reject"])
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AccountingRejectSerializer(serializers.Serializer):
    notes = serializers.CharField()


class VendorPaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_method = serializers.CharField(max_length=50)
    payment_date = serializers.DateField(required=False)
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
