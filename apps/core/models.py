"""
Core models for the school access-control platform.

The identity & role store (RoleAssignment), its RLS-exempt projection
(RoleCache) and the tenant root (School) live here, together with the
education directorates that give principals a geographic scope.

Referential actions (ON DELETE CASCADE / SET NULL) are declared at the
database level by migration 0003, so foreign keys here use DO_NOTHING and
let PostgreSQL perform the cascade inside the same statement.
"""

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q

# Import audit models to register them with Django
from apps.core.audit_models import RowChange, SchoolBackup, SuperadminAction  # noqa: F401


class User(AbstractUser):
    """
    Authenticated principal.

    Identities are issued by the external identity provider; this core only
    references them. Roles are not stored on the user: see RoleAssignment.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        db_table = "principals"
        verbose_name = "Principal"
        verbose_name_plural = "Principals"

    def __str__(self):
        return self.email or self.username


class School(models.Model):
    """
    Tenant root of the hierarchy.

    Every class, teacher and student belongs (transitively) to exactly one
    school, and deleting a school cascades through the whole tree.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the school",
    )

    owner = models.OneToOneField(
        User,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="owned_school",
        help_text="Principal that registered the school (SCHOOL_ADMIN)",
    )

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, unique=True, help_text="Official school code")
    province = models.CharField(max_length=100)
    municipality = models.CharField(max_length=100)
    address = models.TextField(blank=True, null=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    settings = models.JSONField(default=dict, blank=True)

    active = models.BooleanField(default=True)

    # Block status (set by SUPERADMIN)
    blocked = models.BooleanField(default=False)
    blocked_reason = models.TextField(blank=True, null=True)
    blocked_at = models.DateTimeField(null=True, blank=True)
    blocked_by = models.ForeignKey(
        User,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "schools"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["email"],
                condition=Q(email__isnull=False),
                name="schools_unique_email",
            ),
        ]
        indexes = [
            models.Index(fields=["province"], name="school_province_idx"),
            models.Index(fields=["municipality"], name="school_municipality_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def is_accessible(self):
        """A school is usable only when active and not blocked."""
        return self.active and not self.blocked


class MunicipalDirectorate(models.Model):
    """Municipal education directorate: oversees every school of a municipality."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    province = models.CharField(max_length=100)
    municipality = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    position = models.CharField(max_length=255, default="Director Municipal de Educação")
    staff_number = models.CharField(max_length=50, blank=True, null=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "municipal_directorates"
        ordering = ["province", "municipality"]
        constraints = [
            models.UniqueConstraint(
                fields=["province", "municipality"],
                name="municipal_directorate_unique_area",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.municipality}, {self.province})"


class ProvincialDirectorate(models.Model):
    """Provincial education directorate. Only one per province."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    province = models.CharField(max_length=100, unique=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    position = models.CharField(max_length=255, default="Director Provincial de Educação")
    staff_number = models.CharField(max_length=50, blank=True, null=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "provincial_directorates"
        ordering = ["province"]

    def __str__(self):
        return f"{self.name} ({self.province})"


class RoleAssignment(models.Model):
    """
    Identity & role store: the source of truth for who a principal is.

    One assignment per principal. ``tenant_id`` is the scope identifier:
    the school for school-bound roles, the directorate for directorate
    roles, and NULL for SUPERADMIN (enforced by a check constraint).

    An assignment may exist without a principal while an invitation is
    pending; claiming it links the principal.
    """

    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    GUARDIAN = "GUARDIAN"
    MUNICIPAL_DIRECTORATE = "MUNICIPAL_DIRECTORATE"
    PROVINCIAL_DIRECTORATE = "PROVINCIAL_DIRECTORATE"
    SUPERADMIN = "SUPERADMIN"

    ROLE_CHOICES = [
        (SCHOOL_ADMIN, "School administration"),
        (TEACHER, "Teacher"),
        (STUDENT, "Student"),
        (GUARDIAN, "Guardian"),
        (MUNICIPAL_DIRECTORATE, "Municipal education directorate"),
        (PROVINCIAL_DIRECTORATE, "Provincial education directorate"),
        (SUPERADMIN, "Superadmin"),
    ]

    SCHOOL_ROLES = (SCHOOL_ADMIN, TEACHER, STUDENT, GUARDIAN)
    # Roles a school administrator may grant inside its own school
    INVITABLE_ROLES = (TEACHER, STUDENT, GUARDIAN)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    principal = models.OneToOneField(
        User,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="role_assignment",
        help_text="Linked principal; NULL while an invitation is unclaimed",
    )

    role = models.CharField(max_length=32, choices=ROLE_CHOICES)

    tenant_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="School or directorate id; NULL only for SUPERADMIN",
    )

    active = models.BooleanField(default=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "role_assignments"
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(role="SUPERADMIN", tenant_id__isnull=True)
                    | (~Q(role="SUPERADMIN") & Q(tenant_id__isnull=False))
                ),
                name="role_assignments_superadmin_tenant_check",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant_id"], name="role_assignment_tenant_idx"),
            models.Index(fields=["role", "active"], name="role_assignment_role_idx"),
        ]

    def __str__(self):
        return f"{self.principal_id or 'unclaimed'} -> {self.role} ({self.tenant_id})"

    @property
    def is_claimed(self):
        return self.principal_id is not None


class RoleCache(models.Model):
    """
    Denormalized, RLS-exempt projection of RoleAssignment.

    Written only by the ``sync_role_cache`` trigger (same transaction as the
    source write). Policies read this table instead of role_assignments so
    that a policy on role_assignments never queries its own table.
    """

    principal = models.OneToOneField(
        User,
        on_delete=models.DO_NOTHING,
        primary_key=True,
        related_name="role_cache",
    )
    role = models.CharField(max_length=32, choices=RoleAssignment.ROLE_CHOICES)
    tenant_id = models.UUIDField(null=True, blank=True)
    municipality = models.CharField(max_length=100, null=True, blank=True)
    province = models.CharField(max_length=100, null=True, blank=True)
    active = models.BooleanField(default=True)
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "role_cache"

    def __str__(self):
        return f"{self.principal_id}: {self.role}"
