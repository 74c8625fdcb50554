"""
Tests for the role predicates and scope resolution.
"""

import pytest

from apps.core import permissions
from apps.core.exceptions import PrivilegeRequired
from apps.core.models import RoleAssignment
from apps.core.principal_context import principal_context
from apps.core.registration import assign_role


@pytest.mark.django_db
class TestRolePredicates:
    def test_anonymous(self):
        assert permissions.current_role() is None
        assert permissions.is_superadmin() is False
        assert permissions.resolve_current_tenant_scope() is None

    def test_superadmin(self, superadmin):
        with principal_context(superadmin.pk):
            assert permissions.current_role() == RoleAssignment.SUPERADMIN
            assert permissions.is_superadmin() is True
            assert permissions.is_school_admin() is False
            assert permissions.resolve_current_tenant_scope() is None

    def test_school_admin(self, admin_a, school_a):
        with principal_context(admin_a.pk):
            assert permissions.is_school_admin() is True
            assert permissions.is_teacher() is False
            assert permissions.resolve_current_tenant_scope() == school_a.id

    def test_teacher(self, teacher_a, school_a):
        with principal_context(teacher_a.principal_id):
            assert permissions.is_teacher() is True
            assert permissions.resolve_current_tenant_scope() == school_a.id

    @pytest.mark.parametrize(
        "role,predicate",
        [
            (RoleAssignment.STUDENT, "is_student"),
            (RoleAssignment.GUARDIAN, "is_guardian"),
        ],
    )
    def test_school_members(self, make_principal, school_a, role, predicate):
        principal = make_principal()
        assign_role(principal, role, school_a.id)

        with principal_context(principal.pk):
            assert getattr(permissions, predicate)() is True
            assert permissions.is_school_admin() is False

    def test_inactive_assignment_has_no_role(self, admin_a, school_a):
        assign_role(admin_a, RoleAssignment.SCHOOL_ADMIN, school_a.id, active=False)

        with principal_context(admin_a.pk):
            assert permissions.is_school_admin() is False
            assert permissions.resolve_current_tenant_scope() is None


@pytest.mark.django_db
class TestDirectorateScope:
    def test_municipal_scope(self, municipal_viana, school_a, school_b, make_school):
        other_municipality = make_school(province="Luanda", municipality="Cacuaco")

        with principal_context(municipal_viana.pk):
            assert permissions.is_municipal_directorate() is True
            assert permissions.is_school_in_directorate_scope(school_a.id) is True
            assert permissions.is_school_in_directorate_scope(other_municipality.id) is False
            assert permissions.is_school_in_directorate_scope(school_b.id) is False

    def test_provincial_scope(self, provincial_luanda, school_a, school_b, make_school):
        other_municipality = make_school(province="Luanda", municipality="Cacuaco")

        with principal_context(provincial_luanda.pk):
            assert permissions.is_provincial_directorate() is True
            assert permissions.is_school_in_directorate_scope(school_a.id) is True
            assert permissions.is_school_in_directorate_scope(other_municipality.id) is True
            assert permissions.is_school_in_directorate_scope(school_b.id) is False

    def test_school_roles_have_no_directorate_scope(self, admin_a, school_a):
        with principal_context(admin_a.pk):
            assert permissions.is_school_in_directorate_scope(school_a.id) is False


@pytest.mark.django_db
class TestSuperadminRequired:
    def test_decorated_function_runs_for_superadmin(self, superadmin):
        @permissions.superadmin_required
        def privileged():
            return "ok"

        with principal_context(superadmin.pk):
            assert privileged() == "ok"

    def test_decorated_function_rejects_others(self, admin_a):
        @permissions.superadmin_required
        def privileged():
            return "ok"

        with principal_context(admin_a.pk):
            with pytest.raises(PrivilegeRequired, match="privileged requires"):
                privileged()
