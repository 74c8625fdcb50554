"""
Pytest configuration and fixtures for the school access-control core.

The test database connection is a superuser, which bypasses Row-Level
Security. Fixtures therefore create data directly, and tests that check a
policy use ``acting_as`` to evaluate queries as the application role.
"""

import itertools
from contextlib import contextmanager

from django.conf import settings
from django.db import connection

import pytest

from apps.academics.models import Discipline, SchoolClass, Student, Teacher
from apps.core.models import MunicipalDirectorate, ProvincialDirectorate, RoleAssignment, School
from apps.core.principal_context import clear_principal_context, set_principal_context
from apps.core.registration import assign_role

_sequence = itertools.count(1)


def _next():
    return next(_sequence)


@pytest.fixture(autouse=True)
def reset_principal_context(db):
    """Each test starts anonymous and outside system context."""
    clear_principal_context()
    yield


@pytest.fixture
def acting_as():
    """
    Evaluate queries as the application role on behalf of a principal.

    Usage:
        with acting_as(principal):
            Student.objects.count()

    Statements expected to fail must be wrapped in ``transaction.atomic()``
    so the surrounding test transaction stays usable.
    """

    @contextmanager
    def _acting_as(principal):
        set_principal_context(principal.pk if principal is not None else None)
        with connection.cursor() as cursor:
            cursor.execute(f"SET ROLE {settings.RLS_APPLICATION_ROLE};")
        try:
            yield
        finally:
            with connection.cursor() as cursor:
                cursor.execute("RESET ROLE;")
            clear_principal_context()

    return _acting_as


@pytest.fixture
def make_principal(django_user_model):
    def _make(prefix="user"):
        n = _next()
        return django_user_model.objects.create_user(
            username=f"{prefix}{n}", email=f"{prefix}{n}@escolas.ao"
        )

    return _make


@pytest.fixture
def make_school():
    def _make(province="Luanda", municipality="Viana", **kwargs):
        n = _next()
        defaults = {"name": f"Escola Primária n.º {n}", "code": f"EP-{n:04d}"}
        defaults.update(kwargs)
        return School.objects.create(province=province, municipality=municipality, **defaults)

    return _make


@pytest.fixture
def make_class():
    def _make(school, **kwargs):
        n = _next()
        defaults = {
            "name": f"Turma {n}",
            "code": f"T{n}",
            "academic_year": "2025/2026",
            "term": 1,
            "education_level": "Ensino Primário",
            "shift": SchoolClass.MORNING,
        }
        defaults.update(kwargs)
        return SchoolClass.objects.create(school=school, **defaults)

    return _make


@pytest.fixture
def make_teacher():
    def _make(school, principal=None, **kwargs):
        n = _next()
        defaults = {
            "full_name": f"Professor {n}",
            "agent_number": f"AG-{n:05d}",
            "email": f"professor{n}@escolas.ao",
        }
        defaults.update(kwargs)
        return Teacher.objects.create(school=school, principal=principal, **defaults)

    return _make


@pytest.fixture
def make_discipline():
    def _make(school_class, teacher=None, **kwargs):
        n = _next()
        defaults = {"name": f"Disciplina {n}", "code": f"D{n}"}
        defaults.update(kwargs)
        return Discipline.objects.create(school_class=school_class, teacher=teacher, **defaults)

    return _make


@pytest.fixture
def make_student():
    def _make(school_class, **kwargs):
        n = _next()
        defaults = {"full_name": f"Aluno {n}", "process_number": f"PR-{n:06d}"}
        defaults.update(kwargs)
        return Student.objects.create(school_class=school_class, **defaults)

    return _make


@pytest.fixture
def school_a(make_school):
    return make_school(province="Luanda", municipality="Viana")


@pytest.fixture
def school_b(make_school):
    return make_school(province="Benguela", municipality="Lobito")


@pytest.fixture
def class_a(make_class, school_a):
    return make_class(school_a)


@pytest.fixture
def class_b(make_class, school_b):
    return make_class(school_b)


@pytest.fixture
def superadmin(make_principal):
    principal = make_principal("superadmin")
    assign_role(principal, RoleAssignment.SUPERADMIN, None)
    return principal


@pytest.fixture
def admin_a(make_principal, school_a):
    principal = make_principal("admin")
    school_a.owner = principal
    school_a.save(update_fields=["owner"])
    assign_role(principal, RoleAssignment.SCHOOL_ADMIN, school_a.id)
    return principal


@pytest.fixture
def admin_b(make_principal, school_b):
    principal = make_principal("admin")
    assign_role(principal, RoleAssignment.SCHOOL_ADMIN, school_b.id)
    return principal


@pytest.fixture
def teacher_a(make_principal, make_teacher, school_a):
    """Teacher of school A with a linked principal (TEACHER role by trigger)."""
    return make_teacher(school_a, principal=make_principal("teacher"))


@pytest.fixture
def municipal_viana(make_principal):
    directorate = MunicipalDirectorate.objects.create(
        name="Direcção Municipal de Educação de Viana",
        province="Luanda",
        municipality="Viana",
        email="dme.viana@escolas.ao",
    )
    principal = make_principal("dme")
    assign_role(principal, RoleAssignment.MUNICIPAL_DIRECTORATE, directorate.id)
    return principal


@pytest.fixture
def provincial_luanda(make_principal):
    directorate = ProvincialDirectorate.objects.create(
        name="Gabinete Provincial da Educação de Luanda",
        province="Luanda",
        email="gpe.luanda@escolas.ao",
    )
    principal = make_principal("gpe")
    assign_role(principal, RoleAssignment.PROVINCIAL_DIRECTORATE, directorate.id)
    return principal
