# Initial schema for the school hierarchy: teachers, classes, disciplines, students

import uuid

import django.core.validators
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Teacher",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("full_name", models.CharField(max_length=255)),
                ("agent_number", models.CharField(max_length=50, unique=True)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("phone", models.CharField(blank=True, max_length=30, null=True)),
                ("specialty", models.CharField(blank=True, max_length=255, null=True)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "principal",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="teacher_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "school",
                    models.ForeignKey(
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="teachers",
                        to="core.school",
                    ),
                ),
            ],
            options={
                "db_table": "teachers",
                "ordering": ["full_name"],
                "indexes": [
                    models.Index(fields=["school", "active"], name="teacher_school_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SchoolClass",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(max_length=50)),
                ("academic_year", models.CharField(max_length=20)),
                (
                    "term",
                    models.PositiveSmallIntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(3),
                        ]
                    ),
                ),
                ("education_level", models.CharField(max_length=100)),
                ("room", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "shift",
                    models.CharField(
                        blank=True,
                        choices=[("manhã", "Morning"), ("tarde", "Afternoon"), ("noite", "Evening")],
                        max_length=10,
                        null=True,
                    ),
                ),
                ("capacity", models.PositiveIntegerField(default=40)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "school",
                    models.ForeignKey(
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="classes",
                        to="core.school",
                    ),
                ),
            ],
            options={
                "db_table": "classes",
                "ordering": ["academic_year", "name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("school", "code", "academic_year", "term"),
                        name="class_unique_period",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(term__in=[1, 2, 3]), name="class_term_check"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Discipline",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(max_length=50)),
                ("workload_hours", models.PositiveIntegerField(blank=True, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "school_class",
                    models.ForeignKey(
                        db_column="class_id",
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="disciplines",
                        to="academics.schoolclass",
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="disciplines",
                        to="academics.teacher",
                    ),
                ),
            ],
            options={
                "db_table": "disciplines",
                "ordering": ["order", "name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("school_class", "code"),
                        name="discipline_unique_code_per_class",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Student",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("full_name", models.CharField(max_length=255)),
                ("process_number", models.CharField(max_length=50, unique=True)),
                ("birth_date", models.DateField(blank=True, null=True)),
                (
                    "gender",
                    models.CharField(
                        blank=True,
                        choices=[("M", "Male"), ("F", "Female"), ("Outro", "Other")],
                        max_length=5,
                        null=True,
                    ),
                ),
                ("guardian_name", models.CharField(blank=True, max_length=255, null=True)),
                ("guardian_phone", models.CharField(blank=True, max_length=30, null=True)),
                ("guardian_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("address", models.TextField(blank=True, null=True)),
                ("active", models.BooleanField(default=True)),
                (
                    "attendance_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                (
                    "exam_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("Nacional", "National exam"),
                            ("Extraordinário", "Extraordinary exam"),
                            ("Recurso", "Appeal exam"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("retention_reason", models.TextField(blank=True, null=True)),
                ("transition_note", models.TextField(blank=True, null=True)),
                ("conditional_enrollment", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "guardian_principal",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="guarded_students",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "principal",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="student_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "school_class",
                    models.ForeignKey(
                        db_column="class_id",
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="students",
                        to="academics.schoolclass",
                    ),
                ),
            ],
            options={
                "db_table": "students",
                "ordering": ["full_name"],
                "indexes": [
                    models.Index(
                        fields=["school_class", "active"], name="student_class_active_idx"
                    ),
                    models.Index(fields=["guardian_principal"], name="student_guardian_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("attendance_rate__isnull", True),
                            models.Q(("attendance_rate__gte", 0), ("attendance_rate__lte", 100)),
                            _connector="OR",
                        ),
                        name="student_attendance_rate_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TeacherClassDiscipline",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "discipline",
                    models.ForeignKey(
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="teacher_assignments",
                        to="academics.discipline",
                    ),
                ),
                (
                    "school_class",
                    models.ForeignKey(
                        db_column="class_id",
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="teacher_assignments",
                        to="academics.schoolclass",
                    ),
                ),
                (
                    "teacher",
                    models.ForeignKey(
                        on_delete=models.deletion.DO_NOTHING,
                        related_name="assignments",
                        to="academics.teacher",
                    ),
                ),
            ],
            options={
                "db_table": "teacher_class_disciplines",
                "indexes": [
                    models.Index(fields=["teacher", "school_class"], name="tcd_teacher_class_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("school_class", "teacher", "discipline"),
                        name="teacher_class_discipline_unique",
                    ),
                ],
            },
        ),
    ]
