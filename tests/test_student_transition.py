"""
Tests for the academic transition rule applied to students on every write.
"""

from decimal import Decimal

import pytest

from apps.academics.models import ATTENDANCE_THRESHOLD, Student


@pytest.mark.django_db
class TestInsufficientAttendance:
    def test_low_attendance_clears_conditional_enrollment(self, make_student, class_a):
        student = make_student(
            class_a, attendance_rate=Decimal("60.00"), conditional_enrollment=True
        )
        student.refresh_from_db()

        assert student.conditional_enrollment is False
        assert student.retention_reason == (
            "Frequência insuficiente (60,00%, inferior ao mínimo de 66,67%)"
        )
        assert student.transition_note == (
            "Não transitou por frequência insuficiente (60,00%, inferior ao mínimo de 66,67%)."
        )
        assert student.has_insufficient_attendance

    def test_rate_is_formatted_with_decimal_comma(self, make_student, class_a):
        student = make_student(class_a, attendance_rate=Decimal("5.5"))
        student.refresh_from_db()

        assert "(5,50%" in student.retention_reason

    def test_rule_is_idempotent(self, make_student, class_a):
        student = make_student(class_a, attendance_rate=Decimal("60.00"))
        student.refresh_from_db()
        first = (student.retention_reason, student.transition_note)

        student.save()
        student.refresh_from_db()

        assert (student.retention_reason, student.transition_note) == first
        assert student.conditional_enrollment is False

    def test_explicit_reason_is_kept(self, make_student, class_a):
        student = make_student(
            class_a, attendance_rate=Decimal("50.00"), retention_reason="Doença prolongada"
        )
        student.refresh_from_db()

        assert student.retention_reason == "Doença prolongada"
        assert student.transition_note.startswith("Não transitou")

    def test_update_below_threshold_applies_rule(self, make_student, class_a):
        student = make_student(class_a, conditional_enrollment=True)
        student.refresh_from_db()
        assert student.conditional_enrollment is True

        Student.objects.filter(pk=student.pk).update(attendance_rate=Decimal("40.00"))
        student.refresh_from_db()

        assert student.conditional_enrollment is False
        assert "40,00%" in student.retention_reason


@pytest.mark.django_db
class TestConditionalEnrollment:
    def test_conditional_enrollment_defaults_exam_type(self, make_student, class_a):
        student = make_student(class_a, conditional_enrollment=True)
        student.refresh_from_db()

        assert student.exam_type == Student.EXTRAORDINARY

    def test_explicit_exam_type_is_kept(self, make_student, class_a):
        student = make_student(class_a, conditional_enrollment=True, exam_type=Student.APPEAL)
        student.refresh_from_db()

        assert student.exam_type == Student.APPEAL

    def test_attendance_at_threshold_is_untouched(self, make_student, class_a):
        student = make_student(
            class_a, attendance_rate=ATTENDANCE_THRESHOLD, conditional_enrollment=True
        )
        student.refresh_from_db()

        assert student.conditional_enrollment is True
        assert student.retention_reason is None
        assert student.transition_note is None
        assert not student.has_insufficient_attendance

    def test_unknown_attendance_is_untouched(self, make_student, class_a):
        student = make_student(class_a)
        student.refresh_from_db()

        assert student.retention_reason is None
        assert student.exam_type is None
