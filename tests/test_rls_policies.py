"""
Row-Level Security policy tests.

Queries run as the application role through the ``acting_as`` fixture so
that policies are actually evaluated.
"""

from django.db import DatabaseError, transaction

import pytest

from apps.academics.models import Discipline, SchoolClass, Student, Teacher
from apps.core.models import (
    MunicipalDirectorate,
    ProvincialDirectorate,
    RoleAssignment,
    RoleCache,
    School,
)
from apps.core.registration import assign_role, invite_role
from apps.core.rls import find_rls_problems, get_rls_status, list_policies

pytestmark = [pytest.mark.django_db, pytest.mark.rls]


@pytest.fixture
def students(make_student, class_a, class_b):
    return make_student(class_a), make_student(class_b)


class TestRLSSetup:
    def test_setup_has_no_problems(self):
        assert find_rls_problems() == []

    def test_role_cache_is_not_protected(self):
        assert get_rls_status(["role_cache"]) == {"role_cache": False}

    def test_students_policies(self):
        assert list_policies("students") == [
            "students_admin_all_policy",
            "students_directorate_select_policy",
            "students_guardian_select_policy",
            "students_self_select_policy",
            "students_staff_select_policy",
            "students_superadmin_all_policy",
            "students_system_all_policy",
        ]


class TestSchoolIsolation:
    def test_superadmin_sees_all_students(self, acting_as, superadmin, students):
        with acting_as(superadmin):
            assert Student.objects.count() == 2

    def test_admin_sees_only_own_school(self, acting_as, admin_a, students):
        student_a, student_b = students
        with acting_as(admin_a):
            assert Student.objects.filter(pk=student_a.pk).exists()
            assert not Student.objects.filter(pk=student_b.pk).exists()
            assert list(School.objects.values_list("code", flat=True)) == [
                student_a.school_class.school.code
            ]

    def test_anonymous_sees_nothing(self, acting_as, students):
        with acting_as(None):
            assert Student.objects.count() == 0
            assert School.objects.count() == 0

    def test_inactive_assignment_grants_nothing(self, acting_as, admin_a, students):
        RoleAssignment.objects.filter(principal=admin_a).update(active=False)

        with acting_as(admin_a):
            assert Student.objects.count() == 0

    def test_admin_cannot_insert_into_other_school(self, acting_as, admin_b, class_a):
        with acting_as(admin_b):
            with pytest.raises(DatabaseError), transaction.atomic():
                Student.objects.create(
                    school_class=class_a, full_name="Intruso", process_number="PR-X1"
                )

        assert not Student.objects.filter(process_number="PR-X1").exists()

    def test_admin_manages_own_school(self, acting_as, admin_a, class_a):
        with acting_as(admin_a):
            student = Student.objects.create(
                school_class=class_a, full_name="Ana Domingos", process_number="PR-A1"
            )
            assert Student.objects.filter(pk=student.pk).update(full_name="Ana M. Domingos") == 1
            assert Student.objects.filter(pk=student.pk).delete()[0] == 1


class TestTeacherAccess:
    def test_teacher_reads_students_of_own_school(self, acting_as, teacher_a, students):
        with acting_as(teacher_a.principal):
            assert list(Student.objects.values_list("pk", flat=True)) == [students[0].pk]

    def test_teacher_cannot_delete_students(self, acting_as, teacher_a, students):
        with acting_as(teacher_a.principal):
            deleted, _ = Student.objects.filter(pk=students[0].pk).delete()

        assert deleted == 0
        assert Student.objects.filter(pk=students[0].pk).exists()

    def test_teacher_updates_own_profile_only(self, acting_as, teacher_a, make_teacher, school_a):
        colleague = make_teacher(school_a)

        with acting_as(teacher_a.principal):
            assert Teacher.objects.filter(pk=teacher_a.pk).update(phone="923000000") == 1
            assert Teacher.objects.filter(pk=colleague.pk).update(phone="923000001") == 0

    def test_teacher_saves_own_row(self, acting_as, teacher_a):
        with acting_as(teacher_a.principal):
            teacher = Teacher.objects.get(pk=teacher_a.pk)
            teacher.phone = "923000000"
            teacher.save()

        assert Teacher.objects.get(pk=teacher_a.pk).phone == "923000000"
        assert RoleCache.objects.get(principal=teacher_a.principal).role == RoleAssignment.TEACHER

    def test_deleted_teacher_loses_access(self, acting_as, admin_a, teacher_a, students):
        principal = teacher_a.principal

        with acting_as(admin_a):
            assert Teacher.objects.filter(pk=teacher_a.pk).delete()[0] == 1

        with acting_as(principal):
            assert Student.objects.count() == 0

    def test_unlinked_teacher_loses_access(self, acting_as, admin_a, teacher_a, students):
        principal = teacher_a.principal

        with acting_as(admin_a):
            Teacher.objects.filter(pk=teacher_a.pk).update(principal=None)

        with acting_as(principal):
            assert Student.objects.count() == 0

    def test_teacher_cannot_create_classes(self, acting_as, teacher_a, school_a):
        with acting_as(teacher_a.principal):
            with pytest.raises(DatabaseError), transaction.atomic():
                SchoolClass.objects.create(
                    school=school_a,
                    name="Turma Z",
                    code="TZ",
                    academic_year="2025/2026",
                    term=1,
                    education_level="Ensino Primário",
                )


class TestTeacherLinking:
    def test_admin_cannot_link_superadmin_as_teacher(
        self, acting_as, admin_a, superadmin, school_a
    ):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                Teacher.objects.create(
                    school=school_a,
                    principal=superadmin,
                    full_name="Intruso",
                    agent_number="AG-X1",
                    email="intruso1@escolas.ao",
                )

        cache = RoleCache.objects.get(principal=superadmin)
        assert (cache.role, cache.tenant_id) == (RoleAssignment.SUPERADMIN, None)

    def test_admin_cannot_link_other_school_admin(
        self, acting_as, admin_a, admin_b, school_a, school_b
    ):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                Teacher.objects.create(
                    school=school_a,
                    principal=admin_b,
                    full_name="Intruso",
                    agent_number="AG-X2",
                    email="intruso2@escolas.ao",
                )

        cache = RoleCache.objects.get(principal=admin_b)
        assert (cache.role, cache.tenant_id) == (RoleAssignment.SCHOOL_ADMIN, school_b.id)

    def test_admin_cannot_relink_teacher_to_other_principal_with_role(
        self, acting_as, admin_a, admin_b, teacher_a
    ):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                Teacher.objects.filter(pk=teacher_a.pk).update(principal=admin_b)

        assert RoleCache.objects.get(principal=admin_b).role == RoleAssignment.SCHOOL_ADMIN
        assert RoleCache.objects.get(principal=teacher_a.principal).role == RoleAssignment.TEACHER

    def test_admin_links_new_principal(self, acting_as, admin_a, make_principal, school_a):
        principal = make_principal("teacher")

        with acting_as(admin_a):
            Teacher.objects.create(
                school=school_a,
                principal=principal,
                full_name="Nova",
                agent_number="AG-X3",
                email="nova@escolas.ao",
            )

        cache = RoleCache.objects.get(principal=principal)
        assert (cache.role, cache.tenant_id) == (RoleAssignment.TEACHER, school_a.id)


class TestStudentAndGuardianAccess:
    def test_student_sees_only_self(self, acting_as, make_principal, make_student, class_a):
        principal = make_principal("aluno")
        own = make_student(class_a, principal=principal)
        make_student(class_a)
        assign_role(principal, RoleAssignment.STUDENT, class_a.school_id)

        with acting_as(principal):
            assert list(Student.objects.values_list("pk", flat=True)) == [own.pk]
            assert SchoolClass.objects.filter(pk=class_a.pk).exists()

    def test_guardian_sees_guarded_student(
        self, acting_as, make_principal, make_student, make_discipline, class_a, class_b
    ):
        guardian = make_principal("encarregado")
        guarded = make_student(class_a, guardian_principal=guardian)
        make_student(class_b)
        discipline = make_discipline(class_a)
        assign_role(guardian, RoleAssignment.GUARDIAN, class_a.school_id)

        with acting_as(guardian):
            assert list(Student.objects.values_list("pk", flat=True)) == [guarded.pk]
            assert list(Discipline.objects.values_list("pk", flat=True)) == [discipline.pk]
            assert not SchoolClass.objects.filter(pk=class_b.pk).exists()


class TestDirectorateAccess:
    def test_municipal_directorate_sees_schools_in_municipality(
        self, acting_as, municipal_viana, school_a, school_b, students
    ):
        with acting_as(municipal_viana):
            assert list(School.objects.values_list("pk", flat=True)) == [school_a.pk]
            assert Student.objects.count() == 1

    def test_provincial_directorate_sees_schools_in_province(
        self, acting_as, provincial_luanda, make_school, school_a, school_b
    ):
        other_luanda = make_school(province="Luanda", municipality="Cacuaco")

        with acting_as(provincial_luanda):
            visible = set(School.objects.values_list("pk", flat=True))

        assert visible == {school_a.pk, other_luanda.pk}

    def test_provincial_directorate_manages_municipal_directorates(
        self, acting_as, municipal_viana, provincial_luanda
    ):
        benguela = MunicipalDirectorate.objects.create(
            name="Direcção Municipal de Educação do Lobito",
            province="Benguela",
            municipality="Lobito",
            email="dme.lobito@escolas.ao",
        )

        with acting_as(provincial_luanda):
            visible = list(MunicipalDirectorate.objects.values_list("municipality", flat=True))
            updated = MunicipalDirectorate.objects.filter(municipality="Viana").update(
                phone="222111000"
            )
            foreign = MunicipalDirectorate.objects.filter(pk=benguela.pk).update(phone="0")

        assert visible == ["Viana"]
        assert (updated, foreign) == (1, 0)

    def test_municipal_directorate_sees_own_and_provincial(
        self, acting_as, municipal_viana, provincial_luanda
    ):
        with acting_as(municipal_viana):
            assert MunicipalDirectorate.objects.count() == 1
            assert ProvincialDirectorate.objects.filter(province="Luanda").exists()

    def test_directorate_cannot_write_students(self, acting_as, municipal_viana, students):
        with acting_as(municipal_viana):
            assert Student.objects.filter(pk=students[0].pk).update(full_name="X") == 0


class TestRoleAssignmentAccess:
    def test_principal_reads_own_assignment(self, acting_as, teacher_a, admin_b):
        with acting_as(teacher_a.principal):
            assert list(RoleAssignment.objects.values_list("principal_id", flat=True)) == [
                teacher_a.principal_id
            ]

    def test_role_cache_is_readable(self, acting_as, teacher_a, admin_a):
        with acting_as(teacher_a.principal):
            assert RoleCache.objects.filter(principal=admin_a).exists()

    def test_admin_invites_into_own_school(self, acting_as, admin_a, school_a):
        with acting_as(admin_a):
            invitation = invite_role(school_a.id, RoleAssignment.TEACHER)
            assert RoleAssignment.objects.filter(pk=invitation.pk).exists()

    def test_admin_cannot_invite_into_other_school(self, acting_as, admin_a, school_b):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                invite_role(school_b.id, RoleAssignment.STUDENT)

    def test_admin_cannot_create_admin_assignment(self, acting_as, admin_a, school_a):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                RoleAssignment.objects.create(
                    principal=None, role=RoleAssignment.SCHOOL_ADMIN, tenant_id=school_a.id
                )


class TestSchoolStatusGuard:
    def test_admin_edits_school_details(self, acting_as, admin_a, school_a):
        with acting_as(admin_a):
            assert School.objects.filter(pk=school_a.pk).update(phone="222000000") == 1

    def test_admin_cannot_unblock_own_school(self, acting_as, admin_a, school_a):
        School.objects.filter(pk=school_a.pk).update(blocked=True, blocked_reason="Dívidas")

        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                School.objects.filter(pk=school_a.pk).update(blocked=False)

        school_a.refresh_from_db()
        assert school_a.blocked is True

    def test_superadmin_changes_status(self, acting_as, superadmin, school_a):
        with acting_as(superadmin):
            assert School.objects.filter(pk=school_a.pk).update(active=False) == 1
