"""
Account registration for students and guardians.

A student row is created by the school beforehand; these entry points link
it to a freshly authenticated principal and grant the matching role in the
student's school.
"""

import logging
from typing import Optional
from uuid import UUID

from apps.academics.models import Student
from apps.core.exceptions import RegistrationError
from apps.core.models import RoleAssignment
from apps.core.registration import (
    RegistrationResult,
    assign_role,
    check_principal_matches,
    run_registration,
)

logger = logging.getLogger(__name__)


def _get_student_for_update(student_id: UUID) -> Student:
    student = (
        Student.objects.select_for_update(of=("self",))
        .select_related("school_class")
        .filter(pk=student_id)
        .first()
    )
    if student is None or student.school_class is None:
        raise RegistrationError(f"Aluno ou turma não encontrado: {student_id}")
    return student


def register_student_account(
    student_id: UUID, principal, email: Optional[str] = None
) -> RegistrationResult:
    """
    Link a student to its own principal and grant STUDENT in its school.

    Re-registering the same principal is a no-op; a student already linked
    to another principal is rejected.
    """

    def _register():
        check_principal_matches(principal)
        student = _get_student_for_update(student_id)

        if student.principal_id is not None and student.principal_id != principal.pk:
            raise RegistrationError("Aluno já tem uma conta associada")

        school_id = student.school_class.school_id
        Student.objects.filter(pk=student.pk).update(principal=principal)
        assign_role(
            principal,
            RoleAssignment.STUDENT,
            school_id,
            metadata={"student_id": str(student.pk), "email": email or principal.email},
        )

        logger.info(f"Linked student {student.pk} to principal {principal.pk}")
        return RegistrationResult.ok(student_id=str(student.pk), school_id=str(school_id))

    return run_registration("register_student_account", _register)


def register_guardian_account(
    student_id: UUID, principal, email: Optional[str] = None
) -> RegistrationResult:
    """
    Link a guardian principal to a student and grant GUARDIAN in its school.

    The guardian email recorded on the student is filled in when missing.
    """

    def _register():
        check_principal_matches(principal)
        student = _get_student_for_update(student_id)

        if (
            student.guardian_principal_id is not None
            and student.guardian_principal_id != principal.pk
        ):
            raise RegistrationError("Aluno já tem um encarregado associado")

        school_id = student.school_class.school_id
        updates = {"guardian_principal": principal}
        if email and not student.guardian_email:
            updates["guardian_email"] = email
        Student.objects.filter(pk=student.pk).update(**updates)

        assign_role(
            principal,
            RoleAssignment.GUARDIAN,
            school_id,
            metadata={"student_id": str(student.pk), "email": email or principal.email},
        )

        logger.info(f"Linked guardian {principal.pk} to student {student.pk}")
        return RegistrationResult.ok(student_id=str(student.pk), school_id=str(school_id))

    return run_registration("register_guardian_account", _register)


def link_existing_user_as_guardian(student_id: UUID, principal) -> RegistrationResult:
    """
    Link an already registered principal as a student's guardian.

    The principal's role assignment is left unchanged.
    """

    def _link():
        student = _get_student_for_update(student_id)
        if not RoleAssignment.objects.filter(principal=principal).exists():
            raise RegistrationError("Utilizador não tem perfil registado")

        Student.objects.filter(pk=student.pk).update(guardian_principal=principal)
        return RegistrationResult.ok(student_id=str(student.pk))

    return run_registration("link_existing_user_as_guardian", _link)
