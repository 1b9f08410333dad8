# users/tests/test_me.py

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from billing.tests.factories import make_organization, make_user
from permissions.roles import CAP_INVOICE_VIEW, CAP_PAYMENT_SUBMIT, ROLE_ORGANIZATION


class MeViewTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.url = reverse("users:me")

    def test_requires_authentication(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_returns_role_and_capabilities(self):
        org = make_organization()
        user = make_user(ROLE_ORGANIZATION, organization=org)
        self.client.force_authenticate(user)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["role"], ROLE_ORGANIZATION)
        self.assertEqual(response.data["organization_id"], org.pk)
        self.assertEqual(response.data["capabilities"], sorted({CAP_INVOICE_VIEW, CAP_PAYMENT_SUBMIT}))
