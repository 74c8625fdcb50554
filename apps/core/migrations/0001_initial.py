# Initial schema for the identity & role store, tenant root and audit log

import uuid

import django.contrib.auth.models
import django.contrib.auth.validators
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("password", models.CharField(max_length=128, verbose_name="password")),
                (
                    "last_login",
                    models.DateTimeField(blank=True, null=True, verbose_name="last login"),
                ),
                (
                    "is_superuser",
                    models.BooleanField(
                        default=False,
                        help_text="Designates that this user has all permissions without explicitly assigning them.",
                        verbose_name="superuser status",
                    ),
                ),
                (
                    "username",
                    models.CharField(
                        error_messages={"unique": "A user with that username already exists."},
                        help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.",
                        max_length=150,
                        unique=True,
                        validators=[django.contrib.auth.validators.UnicodeUsernameValidator()],
                        verbose_name="username",
                    ),
                ),
                (
                    "first_name",
                    models.CharField(blank=True, max_length=150, verbose_name="first name"),
                ),
                (
                    "last_name",
                    models.CharField(blank=True, max_length=150, verbose_name="last name"),
                ),
                (
                    "email",
                    models.EmailField(blank=True, max_length=254, verbose_name="email address"),
                ),
                (
                    "is_staff",
                    models.BooleanField(
                        default=False,
                        help_text="Designates whether the user can log into this admin site.",
                        verbose_name="staff status",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.",
                        verbose_name="active",
                    ),
                ),
                (
                    "date_joined",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="date joined"
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "groups",
                    models.ManyToManyField(
                        blank=True,
                        help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.group",
                        verbose_name="groups",
                    ),
                ),
                (
                    "user_permissions",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Specific permissions for this user.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.permission",
                        verbose_name="user permissions",
                    ),
                ),
            ],
            options={
                "verbose_name": "Principal",
                "verbose_name_plural": "Principals",
                "db_table": "principals",
            },
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="School",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for the school",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "code",
                    models.CharField(
                        help_text="Official school code", max_length=50, unique=True
                    ),
                ),
                ("province", models.CharField(max_length=100)),
                ("municipality", models.CharField(max_length=100)),
                ("address", models.TextField(blank=True, null=True)),
                ("phone", models.CharField(blank=True, max_length=30, null=True)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("settings", models.JSONField(blank=True, default=dict)),
                ("active", models.BooleanField(default=True)),
                ("blocked", models.BooleanField(default=False)),
                ("blocked_reason", models.TextField(blank=True, null=True)),
                ("blocked_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "blocked_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "owner",
                    models.OneToOneField(
                        blank=True,
                        help_text="Principal that registered the school (SCHOOL_ADMIN)",
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="owned_school",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "schools",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["province"], name="school_province_idx"),
                    models.Index(fields=["municipality"], name="school_municipality_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(email__isnull=False),
                        fields=("email",),
                        name="schools_unique_email",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MunicipalDirectorate",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("province", models.CharField(max_length=100)),
                ("municipality", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("phone", models.CharField(blank=True, max_length=30, null=True)),
                (
                    "position",
                    models.CharField(default="Director Municipal de Educação", max_length=255),
                ),
                ("staff_number", models.CharField(blank=True, max_length=50, null=True)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "municipal_directorates",
                "ordering": ["province", "municipality"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("province", "municipality"),
                        name="municipal_directorate_unique_area",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProvincialDirectorate",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("province", models.CharField(max_length=100, unique=True)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("phone", models.CharField(blank=True, max_length=30, null=True)),
                (
                    "position",
                    models.CharField(default="Director Provincial de Educação", max_length=255),
                ),
                ("staff_number", models.CharField(blank=True, max_length=50, null=True)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "provincial_directorates",
                "ordering": ["province"],
            },
        ),
        migrations.CreateModel(
            name="RoleAssignment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("SCHOOL_ADMIN", "School administration"),
                            ("TEACHER", "Teacher"),
                            ("STUDENT", "Student"),
                            ("GUARDIAN", "Guardian"),
                            ("MUNICIPAL_DIRECTORATE", "Municipal education directorate"),
                            ("PROVINCIAL_DIRECTORATE", "Provincial education directorate"),
                            ("SUPERADMIN", "Superadmin"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "tenant_id",
                    models.UUIDField(
                        blank=True,
                        help_text="School or directorate id; NULL only for SUPERADMIN",
                        null=True,
                    ),
                ),
                ("active", models.BooleanField(default=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "principal",
                    models.OneToOneField(
                        blank=True,
                        help_text="Linked principal; NULL while an invitation is unclaimed",
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="role_assignment",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "role_assignments",
                "indexes": [
                    models.Index(fields=["tenant_id"], name="role_assignment_tenant_idx"),
                    models.Index(fields=["role", "active"], name="role_assignment_role_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(role="SUPERADMIN", tenant_id__isnull=True),
                            models.Q(
                                models.Q(role="SUPERADMIN", _negated=True),
                                models.Q(tenant_id__isnull=False),
                            ),
                            _connector="OR",
                        ),
                        name="role_assignments_superadmin_tenant_check",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoleCache",
            fields=[
                (
                    "principal",
                    models.OneToOneField(
                        on_delete=models.deletion.DO_NOTHING,
                        primary_key=True,
                        related_name="role_cache",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("SCHOOL_ADMIN", "School administration"),
                            ("TEACHER", "Teacher"),
                            ("STUDENT", "Student"),
                            ("GUARDIAN", "Guardian"),
                            ("MUNICIPAL_DIRECTORATE", "Municipal education directorate"),
                            ("PROVINCIAL_DIRECTORATE", "Provincial education directorate"),
                            ("SUPERADMIN", "Superadmin"),
                        ],
                        max_length=32,
                    ),
                ),
                ("tenant_id", models.UUIDField(blank=True, null=True)),
                ("municipality", models.CharField(blank=True, max_length=100, null=True)),
                ("province", models.CharField(blank=True, max_length=100, null=True)),
                ("active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "role_cache",
            },
        ),
        migrations.CreateModel(
            name="SuperadminAction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "action_type",
                    models.CharField(
                        choices=[
                            ("ACTIVATE_SCHOOL", "School activated"),
                            ("DEACTIVATE_SCHOOL", "School deactivated"),
                            ("BLOCK_SCHOOL", "School blocked"),
                            ("UNBLOCK_SCHOOL", "School unblocked"),
                            ("EDIT_SCHOOL", "School edited"),
                            ("CREATE_SCHOOL", "School created"),
                            ("DELETE_SCHOOL", "School deleted"),
                            ("RESTORE_SCHOOL", "School restored"),
                            ("VIEW_SCHOOL_DATA", "School data viewed"),
                            ("EDIT_SYSTEM_CONFIG", "System configuration edited"),
                            ("CREATE_USER", "User created"),
                            ("EDIT_USER", "User edited"),
                            ("DELETE_USER", "User deleted"),
                            ("EXPORT_DATA", "Data exported"),
                            ("OTHER", "Other"),
                        ],
                        db_index=True,
                        max_length=32,
                    ),
                ),
                ("action_details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.CharField(default="unknown", max_length=64)),
                ("user_agent", models.TextField(default="unknown")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Principal that performed the action",
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="superadmin_actions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "target_school",
                    models.ForeignKey(
                        blank=True,
                        help_text="School affected by the action (if applicable)",
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="superadmin_actions",
                        to="core.school",
                    ),
                ),
            ],
            options={
                "db_table": "superadmin_actions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["actor", "-created_at"], name="sa_action_actor_date_idx"
                    ),
                    models.Index(fields=["target_school"], name="sa_action_school_idx"),
                ],
                "constraints": [
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
                ],
            },
        ),
        migrations.CreateModel(
            name="RowChange",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("principal_id", models.UUIDField(blank=True, null=True)),
                ("table_name", models.CharField(max_length=64)),
                (
                    "operation",
                    models.CharField(
                        choices=[("INSERT", "Insert"), ("UPDATE", "Update"), ("DELETE", "Delete")],
                        max_length=6,
                    ),
                ),
                ("row_id", models.UUIDField(blank=True, null=True)),
                ("old_data", models.JSONField(blank=True, null=True)),
                ("new_data", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "row_changes",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["table_name", "row_id"], name="row_change_row_idx"),
                    models.Index(
                        fields=["principal_id", "-created_at"], name="row_change_principal_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SchoolBackup",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("school_id", models.UUIDField(db_index=True)),
                ("school_name", models.CharField(max_length=255)),
                ("school_code", models.CharField(max_length=50)),
                ("payload", models.JSONField(default=list)),
                ("reason", models.TextField(blank=True)),
                ("restored_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "deleted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "restored_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "school_backups",
                "ordering": ["-created_at"],
            },
        ),
    ]
