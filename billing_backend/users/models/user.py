"""
PATH: users/models/user.py

CUSTOM USER MODEL

- Email is the login identity (SimpleJWT obtains tokens with email + password).
- `role` drives capabilities (see permissions.roles).
- Organization users are bound to exactly one Organization; the billing
  services scope their invoice/payment access to it.
"""

from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models

from permissions.roles import (
    ROLE_ACCOUNTANT,
    ROLE_ADMIN,
    ROLE_HR,
    ROLE_INSTRUCTOR,
    ROLE_ORGANIZATION,
    ROLE_SYSADMIN,
    ROLE_VENDOR,
)


# ---------------- USER MANAGER ----------------
class UserManager(BaseUserManager):
    def create_user(self, email=None, password=None, **extra_fields):
        """
        Rules:
        - Must provide at least one of: email or username.
        - If email missing but username present: email becomes <username>@local.test
        - If username missing but email present: username becomes email local-part (uniqueness ensured)
        """
        username = (extra_fields.get("username") or "").strip()
        email = (email or extra_fields.get("email") or "").strip()

        if not email and not username:
            raise ValueError("Provide at least email or username")

        if not email and username:
            email = f"{username.lower()}@local.test"

        email = self.normalize_email(email)

        if email and not username:
            username = self._unique_username((email.split("@")[0] or "user").strip().lower())

        extra_fields["email"] = email
        extra_fields["username"] = username
        extra_fields.setdefault("is_active", True)

        user = self.model(**extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.full_clean()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Superuser must have an email")
        if not password:
            raise ValueError("Superuser must have a password")

        extra_fields.setdefault("role", ROLE_ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True")

        return self.create_user(email=email, password=password, **extra_fields)

    def _unique_username(self, base: str) -> str:
        candidate = base
        i = 1
        while self.model.objects.filter(username__iexact=candidate).exists():
            i += 1
            candidate = f"{base}{i}"
        return candidate


# ---------------- USER MODEL ----------------
class User(AbstractBaseUser, PermissionsMixin):
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_ACCOUNTANT, "Accountant"),
        (ROLE_ORGANIZATION, "Organization"),
        (ROLE_VENDOR, "Vendor"),
        (ROLE_INSTRUCTOR, "Instructor"),
        (ROLE_HR, "HR"),
        (ROLE_SYSADMIN, "System Admin"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    username = models.CharField(max_length=150, unique=True)
    email = models.EmailField(unique=True)

    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_ORGANIZATION)

    # Only set for role=organization
    organization = models.ForeignKey(
        "courses.Organization",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-created_at"]

    def clean(self):
        if self.email:
            self.email = self.__class__.objects.normalize_email(self.email).strip()
        if self.username:
            self.username = self.username.strip()

        if self.role == ROLE_ORGANIZATION and not self.organization_id:
            raise ValidationError({"organization": "Organization users must belong to an organization"})
        if self.role != ROLE_ORGANIZATION and self.organization_id:
            raise ValidationError({"organization": "Only organization users may be bound to an organization"})

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username or self.email

    def __str__(self):
        return f"{self.username or self.email} ({self.role})"
