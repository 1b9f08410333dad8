# billing/signals.py

"""
Default receivers for billing notifications.

Delivery (email, in-app) is handled outside this service; the receiver
here records every dispatched event in the billing log so that delivery
can be traced.
"""

import logging

from django.dispatch import receiver

from billing.services.notifications import billing_event

logger = logging.getLogger("billing")


@receiver(billing_event, dispatch_uid="billing.log_billing_event")
def log_billing_event(sender, event=None, payload=None, **kwargs):
    logger.info(
        "Billing notification dispatched",
        extra={"event": event, **{f"payload_{k}": v for k, v in (payload or {}).items()}},
    )
