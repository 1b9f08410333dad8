# billing/services/balance_service.py

"""
BALANCE CALCULATOR (AUTHORITATIVE)

This module answers ONE question:
"How much of this invoice is settled, how much is awaiting verification,
and what does that make its payment status?"

RULES:
- PURE: no reads, no writes, no clock unless `today` is omitted
- Every other component (submission, verification, reversal, vendor
  payments, read APIs, integrity checks) asks THIS module; nobody sums
  payments on their own
- outstanding = total - verified (pending payments are NOT counted)
"""

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from django.utils import timezone

from billing.models import Invoice, Payment
from vendors.models import VendorPayment

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_OVERDUE = "overdue"
PAYMENT_STATUS_PENDING = "pending"

INVOICE_SETTLED_STATUSES = frozenset({Payment.Status.VERIFIED})
INVOICE_PENDING_STATUSES = frozenset({Payment.Status.PENDING_VERIFICATION})

VENDOR_SETTLED_STATUSES = frozenset({VendorPayment.Status.PROCESSED})


def money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Balance:
    total: Decimal
    verified_sum: Decimal
    pending_sum: Decimal
    outstanding: Decimal
    is_fully_paid: bool
    payment_status: str

    def as_dict(self) -> dict:
        data = asdict(self)
        for key in ("total", "verified_sum", "pending_sum", "outstanding"):
            data[key] = str(data[key])
        return data


def calculate_balance(
    *,
    total,
    due_date: Optional[date],
    payments: Iterable,
    today: Optional[date] = None,
    settled_statuses=INVOICE_SETTLED_STATUSES,
    pending_statuses=INVOICE_PENDING_STATUSES,
) -> Balance:
    """
    `payments` is any iterable of objects exposing `.amount` and `.status`.

    payment_status:
    - paid     if verified_sum >= total
    - overdue  if today > due_date
    - pending  otherwise
    """
    total = money(total)

    verified_sum = ZERO
    pending_sum = ZERO
    for p in payments:
        if p.status in settled_statuses:
            verified_sum += money(p.amount)
        elif p.status in pending_statuses:
            pending_sum += money(p.amount)

    is_fully_paid = verified_sum >= total

    if today is None:
        today = timezone.localdate()

    if is_fully_paid:
        payment_status = PAYMENT_STATUS_PAID
    elif due_date is not None and today > due_date:
        payment_status = PAYMENT_STATUS_OVERDUE
    else:
        payment_status = PAYMENT_STATUS_PENDING

    return Balance(
        total=total,
        verified_sum=verified_sum,
        pending_sum=pending_sum,
        outstanding=total - verified_sum,
        is_fully_paid=is_fully_paid,
        payment_status=payment_status,
    )


def invoice_balance(invoice, payments: Iterable, *, today: Optional[date] = None) -> Balance:
    return calculate_balance(
        total=invoice.total_amount,
        due_date=invoice.due_date,
        payments=payments,
        today=today,
    )


def vendor_invoice_balance(vendor_invoice, payments: Iterable, *, today: Optional[date] = None) -> Balance:
    return calculate_balance(
        total=vendor_invoice.total,
        due_date=vendor_invoice.due_date,
        payments=payments,
        today=today,
        settled_statuses=VENDOR_SETTLED_STATUSES,
        pending_statuses=frozenset(),
    )


def derive_invoice_status(balance: Balance) -> str:
    """
    Settlement status of an open invoice: paid when fully covered by
    verified payments, pending otherwise. Overdue is a display label, not
    a stored status.
    """
    return Invoice.Status.PAID if balance.is_fully_paid else Invoice.Status.PENDING
