"""
Tenant hierarchy models below the school.

School -> SchoolClass -> (Discipline, Student), School -> Teacher, and the
TeacherClassDiscipline association joining the three. Cross-table
consistency that foreign keys cannot express is enforced by triggers
installed in migration 0002.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from apps.core.models import School

# Minimum annual attendance (percent) for a student to transition
ATTENDANCE_THRESHOLD = Decimal("66.67")


class Teacher(models.Model):
    """
    Teacher employed by a school.

    ``principal`` stays NULL until the teacher claims an account; while it
    is set, a TEACHER role assignment is kept in sync by trigger and revoked
    when the row is deleted or unlinked.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    school = models.ForeignKey(School, on_delete=models.DO_NOTHING, related_name="teachers")

    principal = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="teacher_profile",
    )

    full_name = models.CharField(max_length=255)
    agent_number = models.CharField(max_length=50, unique=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, blank=True, null=True)
    specialty = models.CharField(max_length=255, blank=True, null=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "teachers"
        ordering = ["full_name"]
        indexes = [
            models.Index(fields=["school", "active"], name="teacher_school_active_idx"),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.agent_number})"


class SchoolClass(models.Model):
    """A class (turma) of one school for one academic year and term."""

    MORNING = "manhã"
    AFTERNOON = "tarde"
    EVENING = "noite"

    SHIFT_CHOICES = [
        (MORNING, "Morning"),
        (AFTERNOON, "Afternoon"),
        (EVENING, "Evening"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(School, on_delete=models.DO_NOTHING, related_name="classes")
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50)
    # Free text such as "2025/2026"
    academic_year = models.CharField(max_length=20)
    term = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(3)],
    )
    education_level = models.CharField(max_length=100)
    room = models.PositiveIntegerField(null=True, blank=True)
    shift = models.CharField(max_length=10, choices=SHIFT_CHOICES, null=True, blank=True)
    capacity = models.PositiveIntegerField(default=40)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "classes"
        ordering = ["academic_year", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["school", "code", "academic_year", "term"],
                name="class_unique_period",
            ),
            models.CheckConstraint(condition=Q(term__in=[1, 2, 3]), name="class_term_check"),
        ]

    def __str__(self):
        return f"{self.name} {self.academic_year} T{self.term}"


class Discipline(models.Model):
    """Subject taught in one class."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.DO_NOTHING,
        related_name="disciplines",
        db_column="class_id",
    )
    teacher = models.ForeignKey(
        Teacher,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="disciplines",
    )
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50)
    workload_hours = models.PositiveIntegerField(null=True, blank=True)
    description = models.TextField(blank=True, null=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "disciplines"
        ordering = ["order", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["school_class", "code"],
                name="discipline_unique_code_per_class",
            ),
        ]

    def __str__(self):
        return self.name


class Student(models.Model):
    """
    Student enrolled in one class.

    May be linked to its own principal and to one guardian principal. The
    academic transition fields are normalised by trigger on every write:
    attendance below ATTENDANCE_THRESHOLD clears conditional enrollment and
    fills in a retention reason; conditional enrollment defaults the exam
    type to EXTRAORDINARY.
    """

    NATIONAL = "Nacional"
    EXTRAORDINARY = "Extraordinário"
    APPEAL = "Recurso"

    EXAM_TYPE_CHOICES = [
        (NATIONAL, "National exam"),
        (EXTRAORDINARY, "Extraordinary exam"),
        (APPEAL, "Appeal exam"),
    ]

    GENDER_CHOICES = [
        ("M", "Male"),
        ("F", "Female"),
        ("Outro", "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.DO_NOTHING,
        related_name="students",
        db_column="class_id",
    )
    principal = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="student_profile",
    )
    guardian_principal = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        null=True,
        blank=True,
        related_name="guarded_students",
    )

    full_name = models.CharField(max_length=255)
    process_number = models.CharField(max_length=50, unique=True)
    birth_date = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=5, choices=GENDER_CHOICES, null=True, blank=True)
    guardian_name = models.CharField(max_length=255, blank=True, null=True)
    guardian_phone = models.CharField(max_length=30, blank=True, null=True)
    guardian_email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    active = models.BooleanField(default=True)

    # Academic transition
    attendance_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    exam_type = models.CharField(max_length=20, choices=EXAM_TYPE_CHOICES, null=True, blank=True)
    retention_reason = models.TextField(blank=True, null=True)
    transition_note = models.TextField(blank=True, null=True)
    conditional_enrollment = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "students"
        ordering = ["full_name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(attendance_rate__isnull=True)
                | Q(attendance_rate__gte=0, attendance_rate__lte=100),
                name="student_attendance_rate_range",
            ),
        ]
        indexes = [
            models.Index(fields=["school_class", "active"], name="student_class_active_idx"),
            models.Index(fields=["guardian_principal"], name="student_guardian_idx"),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.process_number})"

    @property
    def has_insufficient_attendance(self):
        return self.attendance_rate is not None and self.attendance_rate < ATTENDANCE_THRESHOLD


class TeacherClassDiscipline(models.Model):
    """
    Teacher x class x discipline association.

    Invariant (checked by trigger before insert/update): the teacher and the
    class belong to the same school, and the discipline belongs to the class.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    teacher = models.ForeignKey(Teacher, on_delete=models.DO_NOTHING, related_name="assignments")
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.DO_NOTHING,
        related_name="teacher_assignments",
        db_column="class_id",
    )
    discipline = models.ForeignKey(
        Discipline, on_delete=models.DO_NOTHING, related_name="teacher_assignments"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "teacher_class_disciplines"
        constraints = [
            models.UniqueConstraint(
                fields=["school_class", "teacher", "discipline"],
                name="teacher_class_discipline_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["teacher", "school_class"], name="tcd_teacher_class_idx"),
        ]

    def __str__(self):
        return f"{self.teacher_id} / {self.school_class_id} / {self.discipline_id}"
