# vendors/apps.py

"""
VENDORS APP CONFIG

Vendor payables: vendor invoices routed admin -> accounting -> paid.
"""

from django.apps import AppConfig


class VendorsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "vendors"
    verbose_name = "Vendor Payables"
