# billing/api/filters.py

import django_filters

from billing.models import Invoice


class InvoiceFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Invoice.Status.choices)
    organization = django_filters.UUIDFilter(field_name="organization_id")
    posted_to_org = django_filters.BooleanFilter()
    due_before = django_filters.DateFilter(field_name="due_date", lookup_expr="lte")
    due_after = django_filters.DateFilter(field_name="due_date", lookup_expr="gte")

    class Meta:
        model = Invoice
        fields = ["status", "organization", "posted_to_org"]
