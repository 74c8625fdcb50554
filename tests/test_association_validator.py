"""
Tests for the teacher/class/discipline association validator triggers.
"""

import uuid

from django.db import IntegrityError, connection, transaction

import pytest

from apps.academics.models import TeacherClassDiscipline


@pytest.fixture
def setup_a(make_teacher, make_discipline, school_a, class_a):
    teacher = make_teacher(school_a)
    return teacher, class_a, make_discipline(class_a)


@pytest.mark.django_db
class TestTeacherClassDiscipline:
    def test_consistent_association_is_accepted(self, setup_a):
        teacher, school_class, discipline = setup_a

        association = TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        assert TeacherClassDiscipline.objects.filter(pk=association.pk).exists()

    def test_teacher_from_other_school_is_rejected(self, make_teacher, school_b, setup_a):
        _, school_class, discipline = setup_a
        foreign_teacher = make_teacher(school_b)

        with pytest.raises(IntegrityError, match="cannot be assigned to class"), transaction.atomic():
            TeacherClassDiscipline.objects.create(
                teacher=foreign_teacher, school_class=school_class, discipline=discipline
            )

        assert TeacherClassDiscipline.objects.count() == 0

    def test_discipline_of_other_class_is_rejected(self, make_class, make_discipline, school_a, setup_a):
        teacher, school_class, _ = setup_a
        other_discipline = make_discipline(make_class(school_a))

        with pytest.raises(IntegrityError, match="belongs to class"), transaction.atomic():
            TeacherClassDiscipline.objects.create(
                teacher=teacher, school_class=school_class, discipline=other_discipline
            )

    def test_missing_teacher_is_rejected(self, setup_a):
        _, school_class, discipline = setup_a

        with pytest.raises(IntegrityError, match="does not exist"), transaction.atomic():
            with connection.cursor() as cursor:
                cursor.execute(
                    "INSERT INTO teacher_class_disciplines "
                    "(id, teacher_id, class_id, discipline_id, created_at, updated_at) "
                    "VALUES (%s, %s, %s, %s, NOW(), NOW());",
                    [str(uuid.uuid4()), str(uuid.uuid4()), str(school_class.pk), str(discipline.pk)],
                )

    def test_update_is_validated(self, make_teacher, school_b, setup_a):
        teacher, school_class, discipline = setup_a
        association = TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )
        foreign_teacher = make_teacher(school_b)

        with pytest.raises(IntegrityError), transaction.atomic():
            TeacherClassDiscipline.objects.filter(pk=association.pk).update(teacher=foreign_teacher)

    def test_duplicate_association_is_rejected(self, setup_a):
        teacher, school_class, discipline = setup_a
        TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            TeacherClassDiscipline.objects.create(
                teacher=teacher, school_class=school_class, discipline=discipline
            )


@pytest.mark.django_db
class TestReparenting:
    def test_teacher_with_assignments_cannot_change_school(self, school_b, setup_a):
        teacher, school_class, discipline = setup_a
        TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        with pytest.raises(IntegrityError, match="cannot change school"), transaction.atomic():
            teacher.school = school_b
            teacher.save()

    def test_class_with_assignments_cannot_change_school(self, school_b, setup_a):
        teacher, school_class, discipline = setup_a
        TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        with pytest.raises(IntegrityError, match="cannot change school"), transaction.atomic():
            school_class.school = school_b
            school_class.save()

    def test_discipline_with_assignments_cannot_change_class(self, make_class, school_a, setup_a):
        teacher, school_class, discipline = setup_a
        TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        with pytest.raises(IntegrityError, match="cannot change class"), transaction.atomic():
            discipline.school_class = make_class(school_a)
            discipline.save()

    def test_rows_with_assignments_may_be_edited_in_place(self, setup_a):
        teacher, school_class, discipline = setup_a
        TeacherClassDiscipline.objects.create(
            teacher=teacher, school_class=school_class, discipline=discipline
        )

        teacher.phone = "923000000"
        teacher.save()
        school_class.name = "Turma A (reformulada)"
        school_class.save()
        discipline.name = "Língua Portuguesa"
        discipline.save()

        assert TeacherClassDiscipline.objects.filter(teacher=teacher).count() == 1
        discipline.refresh_from_db()
        assert discipline.name == "Língua Portuguesa"

    def test_teacher_without_assignments_may_move(self, make_teacher, school_a, school_b):
        teacher = make_teacher(school_a)

        teacher.school = school_b
        teacher.save()

        teacher.refresh_from_db()
        assert teacher.school_id == school_b.pk


@pytest.mark.django_db
class TestDisciplineTeacher:
    def test_teacher_of_same_school_is_accepted(self, make_teacher, make_discipline, school_a, class_a):
        discipline = make_discipline(class_a, teacher=make_teacher(school_a))
        assert discipline.teacher_id is not None

    def test_teacher_of_other_school_is_rejected(self, make_teacher, make_discipline, school_b, class_a):
        with pytest.raises(IntegrityError, match="cannot teach discipline"), transaction.atomic():
            make_discipline(class_a, teacher=make_teacher(school_b))
