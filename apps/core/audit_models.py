"""
Audit models for the school access-control platform.

- SuperadminAction: append-only record of privileged actions.
- RowChange: generic row-level change history written by a database trigger.
- SchoolBackup: snapshot of a school's hierarchy taken before deletion.

Audit rows are immutable: a trigger rejects UPDATE and DELETE, except for
the database nulling a foreign key when the referenced row is deleted.
"""

import uuid

from django.conf import settings
from django.db import models


class SuperadminAction(models.Model):
    """
    Audit trail for privileged (SUPERADMIN) actions.

    ``target_school`` becomes NULL when the school is deleted, so callers
    also store the school's name and code inside ``action_details``.
    Extending ACTION_CHOICES requires a migration that replaces the
    ``superadmin_actions_action_type_check`` constraint.
    """

    ACTIVATE_SCHOOL = "ACTIVATE_SCHOOL"
    DEACTIVATE_SCHOOL = "DEACTIVATE_SCHOOL"
    BLOCK_SCHOOL = "BLOCK_SCHOOL"
    UNBLOCK_SCHOOL = "UNBLOCK_SCHOOL"
    EDIT_SCHOOL = "EDIT_SCHOOL"
    CREATE_SCHOOL = "CREATE_SCHOOL"
    DELETE_SCHOOL = "DELETE_SCHOOL"
    RESTORE_SCHOOL = "RESTORE_SCHOOL"
    VIEW_SCHOOL_DATA = "VIEW_SCHOOL_DATA"
    EDIT_SYSTEM_CONFIG = "EDIT_SYSTEM_CONFIG"
    CREATE_USER = "CREATE_USER"
    EDIT_USER = "EDIT_USER"
    DELETE_USER = "DELETE_USER"
    EXPORT_DATA = "EXPORT_DATA"
    OTHER = "OTHER"

    ACTION_CHOICES = [
        (ACTIVATE_SCHOOL, "School activated"),
        (DEACTIVATE_SCHOOL, "School deactivated"),
        (BLOCK_SCHOOL, "School blocked"),
        (UNBLOCK_SCHOOL, "School unblocked"),
        (EDIT_SCHOOL, "School edited"),
        (CREATE_SCHOOL, "School created"),
        (DELETE_SCHOOL, "School deleted"),
        (RESTORE_SCHOOL, "School restored"),
        (VIEW_SCHOOL_DATA, "School data viewed"),
        (EDIT_SYSTEM_CONFIG, "System configuration edited"),
        (CREATE_USER, "User created"),
        (EDIT_USER, "User edited"),
        (DELETE_USER, "User deleted"),
        (EXPORT_DATA, "Data exported"),
        (OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="superadmin_actions",
        help_text="Principal that performed the action",
    )

    action_type = models.CharField(max_length=32, choices=ACTION_CHOICES, db_index=True)

    target_school = models.ForeignKey(
        "core.School",
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="superadmin_actions",
        help_text="School affected by the action (if applicable)",
    )

    action_details = models.JSONField(default=dict, blank=True)

    ip_address = models.CharField(max_length=64, default="unknown")
    user_agent = models.TextField(default="unknown")

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "superadmin_actions"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    action_type__in=[
                        "ACTIVATE_SCHOOL",
                        "DEACTIVATE_SCHOOL",
                        "BLOCK_SCHOOL",
                        "UNBLOCK_SCHOOL",
                        "EDIT_SCHOOL",
                        "CREATE_SCHOOL",
                        "DELETE_SCHOOL",
                        "RESTORE_SCHOOL",
                        "VIEW_SCHOOL_DATA",
                        "EDIT_SYSTEM_CONFIG",
                        "CREATE_USER",
                        "EDIT_USER",
                        "DELETE_USER",
                        "EXPORT_DATA",
                        "OTHER",
                    ]
                ),
                name="superadmin_actions_action_type_check",
            ),
        ]
        indexes = [
            models.Index(fields=["actor", "-created_at"], name="sa_action_actor_date_idx"),
            models.Index(fields=["target_school"], name="sa_action_school_idx"),
        ]

    def __str__(self):
        return f"{self.action_type} by {self.actor_id} at {self.created_at}"


class RowChange(models.Model):
    """
    Generic row-level change history.

    Rows are written exclusively by the ``record_row_change`` trigger; the
    principal id is copied from the session context and deliberately not a
    foreign key, so history survives principal deletion.
    """

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    OPERATION_CHOICES = [
        (INSERT, "Insert"),
        (UPDATE, "Update"),
        (DELETE, "Delete"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    principal_id = models.UUIDField(null=True, blank=True)
    table_name = models.CharField(max_length=64)
    operation = models.CharField(max_length=6, choices=OPERATION_CHOICES)
    row_id = models.UUIDField(null=True, blank=True)
    old_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "row_changes"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["table_name", "row_id"], name="row_change_row_idx"),
            models.Index(fields=["principal_id", "-created_at"], name="row_change_principal_idx"),
        ]

    def __str__(self):
        return f"{self.operation} {self.table_name}:{self.row_id}"


class SchoolBackup(models.Model):
    """
    Snapshot of a school and its hierarchy, taken before a privileged delete.

    ``payload`` holds the Django JSON serialization of every row, ordered so
    that it can be replayed parent-first by ``restore_school``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.UUIDField(db_index=True)
    school_name = models.CharField(max_length=255)
    school_code = models.CharField(max_length=50)
    payload = models.JSONField(default=list)
    reason = models.TextField(blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="+",
    )
    restored_at = models.DateTimeField(null=True, blank=True)
    restored_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "school_backups"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Backup of {self.school_name} ({self.school_code})"

    @property
    def is_restored(self):
        return self.restored_at is not None
