# billing/tests/test_permissions.py

from types import SimpleNamespace

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase
from rest_framework.test import APIRequestFactory

from billing.tests.factories import make_organization, make_user
from permissions.roles import (
    CAP_INVOICE_CREATE,
    CAP_INVOICE_VIEW,
    CAP_PAYMENT_SUBMIT,
    CAP_PAYMENT_VERIFY,
    CAP_VENDOR_ADMIN_REVIEW,
    HasCapability,
    ROLE_ACCOUNTANT,
    ROLE_ADMIN,
    ROLE_INSTRUCTOR,
    ROLE_ORGANIZATION,
    ROLE_VENDOR,
    capabilities_for,
)


class CapabilityPermissionTests(TestCase):
    """
    GUARANTEES:
    - Capabilities follow the role map
    - Views without a declared capability are closed
    - Anonymous users denied everywhere
    """

    def setUp(self):
        self.factory = APIRequestFactory()

        self.admin = make_user(ROLE_ADMIN)
        self.accountant = make_user(ROLE_ACCOUNTANT)
        self.org_user = make_user(ROLE_ORGANIZATION, organization=make_organization())
        self.vendor = make_user(ROLE_VENDOR)
        self.instructor = make_user(ROLE_INSTRUCTOR)

    def _request(self, user, method="get"):
        request = getattr(self.factory, method)("/")
        request.user = user
        return request

    def test_capability_map(self):
        self.assertIn(CAP_VENDOR_ADMIN_REVIEW, capabilities_for(self.admin))
        self.assertIn(CAP_PAYMENT_VERIFY, capabilities_for(self.accountant))
        self.assertNotIn(CAP_PAYMENT_SUBMIT, capabilities_for(self.accountant))
        self.assertEqual(capabilities_for(self.org_user), {CAP_INVOICE_VIEW, CAP_PAYMENT_SUBMIT})
        self.assertNotIn(CAP_INVOICE_VIEW, capabilities_for(self.vendor))
        self.assertEqual(capabilities_for(self.instructor), set())

    def test_has_capability_per_method(self):
        view = SimpleNamespace(required_capabilities={"GET": CAP_INVOICE_VIEW, "POST": CAP_INVOICE_CREATE})

        self.assertTrue(HasCapability().has_permission(self._request(self.org_user), view))
        self.assertFalse(HasCapability().has_permission(self._request(self.org_user, "post"), view))
        self.assertTrue(HasCapability().has_permission(self._request(self.accountant, "post"), view))

    def test_single_capability(self):
        view = SimpleNamespace(required_capability=CAP_PAYMENT_VERIFY)

        self.assertTrue(HasCapability().has_permission(self._request(self.accountant, "post"), view))
        self.assertFalse(HasCapability().has_permission(self._request(self.vendor, "post"), view))

    def test_view_without_capability_is_closed(self):
        view = SimpleNamespace()
        self.assertFalse(HasCapability().has_permission(self._request(self.admin), view))

    def test_anonymous_denied(self):
        request = self._request(AnonymousUser())
        view = SimpleNamespace(required_capability=CAP_INVOICE_VIEW)

        self.assertEqual(capabilities_for(request.user), set())
        self.assertFalse(HasCapability().has_permission(request, view))
