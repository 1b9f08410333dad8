# billing/services/notifications.py

"""
BILLING NOTIFICATIONS (FIRE-AND-FORGET)

Financial mutations announce themselves through `billing_event` AFTER the
surrounding transaction commits. Receivers (email, in-app, ...) are
external; a failing receiver is logged and never affects the mutation.
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger("billing")

# kwargs: event (str), payload (dict)
billing_event = Signal()

EVENT_INVOICE_CREATED = "invoice_created"
EVENT_INVOICE_POSTED = "invoice_posted"
EVENT_INVOICE_CLOSED = "invoice_closed"
EVENT_PAYMENT_SUBMITTED = "payment_submitted"
EVENT_PAYMENT_VERIFIED = "payment_verified"
EVENT_PAYMENT_REJECTED = "payment_rejected"
EVENT_PAYMENT_REVERSED = "payment_reversed"
EVENT_VENDOR_INVOICE_SUBMITTED = "vendor_invoice_submitted"
EVENT_VENDOR_INVOICE_APPROVED = "vendor_invoice_approved"
EVENT_VENDOR_INVOICE_REJECTED = "vendor_invoice_rejected"
EVENT_VENDOR_PAYMENT_RECORDED = "vendor_payment_recorded"


def _send(event: str, payload: dict) -> None:
    responses = billing_event.send_robust(sender=None, event=event, payload=payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                "Notification receiver failed",
                extra={
                    "event": event,
                    "receiver": getattr(receiver, "__name__", repr(receiver)),
                },
                exc_info=response,
            )


def notify_after_commit(*, repository, event: str, payload: dict) -> None:
    """
    Queue `event` for dispatch once the current transaction commits.
    Nothing is sent if the transaction rolls back.
    """
    repository.on_commit(lambda: _send(event, payload))
