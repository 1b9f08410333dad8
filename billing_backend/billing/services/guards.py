# billing/services/guards.py

"""
Actor checks shared by the billing and vendor services.

Views already gate on capabilities; services re-assert them so that no
financial logic runs for an actor whose role does not allow it, whatever
the entry point (API, admin action, management command, tests).
"""

from permissions.roles import ROLE_ORGANIZATION, get_user_role, user_has_capability

from billing.services.exceptions import BillingPermissionError


def assert_actor_can(*, actor, capability: str, action: str) -> None:
    if not actor or not getattr(actor, "is_authenticated", False):
        raise BillingPermissionError(f"Authentication required to {action}.")

    if not user_has_capability(actor, capability):
        raise BillingPermissionError(
            f"Users with role '{get_user_role(actor)}' are not allowed to {action}."
        )


def actor_sees_invoice(actor, invoice) -> bool:
    """
    Organization users only see their own organization's invoices, and only
    once accounting has posted them; staff roles see everything their
    capabilities allow.
    """
    if get_user_role(actor) != ROLE_ORGANIZATION:
        return True
    own = getattr(actor, "organization_id", None)
    return own is not None and own == invoice.organization_id and bool(invoice.posted_to_org)


def scope_invoices_for_actor(qs, actor):
    """Queryset counterpart of actor_sees_invoice."""
    if get_user_role(actor) != ROLE_ORGANIZATION:
        return qs
    own = getattr(actor, "organization_id", None)
    if own is None:
        return qs.none()
    return qs.filter(organization_id=own, posted_to_org=True)


def actor_label(actor) -> str:
    if actor is None:
        return "system"
    return (
        getattr(actor, "display_name", None)
        or getattr(actor, "email", None)
        or str(getattr(actor, "pk", "unknown"))
    )


def actor_ref(actor):
    """Actor usable as a FK value (None for non-persisted actors)."""
    return actor if getattr(actor, "_meta", None) is not None else None
