"""
Registration entry points.

These functions are called by principals that do not hold a role yet, so
they run in system context (``bypass_rls``). Validation and uniqueness
conflicts are reported as a structured ``RegistrationResult`` instead of an
exception, so the calling layer can render a message without crashing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import UUID

from django.db import DataError, IntegrityError, InternalError, transaction

from apps.core.exceptions import RegistrationError
from apps.core.models import MunicipalDirectorate, ProvincialDirectorate, RoleAssignment, School
from apps.core.principal_context import bypass_rls, get_current_principal

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    """Outcome of a registration call: ``{success, error, ...data}``."""

    success: bool
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data) -> "RegistrationResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "RegistrationResult":
        return cls(success=False, error=error)

    def as_dict(self) -> Dict[str, Any]:
        result = {"success": self.success}
        if self.error is not None:
            result["error"] = self.error
        result.update(self.data)
        return result


def run_registration(operation_name: str, func, *args, **kwargs) -> RegistrationResult:
    """
    Run ``func`` atomically in system context and convert failures.

    ``func`` returns a RegistrationResult or raises RegistrationError /
    IntegrityError; both kinds of failure roll back every write it made.
    """
    try:
        with bypass_rls():
            with transaction.atomic():
                return func(*args, **kwargs)
    except RegistrationError as e:
        logger.info(f"{operation_name} rejected: {e}")
        return RegistrationResult.failure(str(e))
    except IntegrityError as e:
        logger.warning(f"{operation_name} failed on a uniqueness conflict: {e}")
        return RegistrationResult.failure(f"Conflito de dados: {e}")
    except (InternalError, DataError) as e:
        logger.error(f"{operation_name} failed: {e}")
        return RegistrationResult.failure(str(e).strip())


def check_principal_matches(principal) -> None:
    """Registration is only ever done by the principal being registered."""
    current = get_current_principal()
    if current is None:
        raise RegistrationError("Utilizador não autenticado")
    if current != principal.pk:
        raise RegistrationError("Principal ID não corresponde ao utilizador autenticado")


def assign_role(principal, role: str, tenant_id: Optional[UUID], active: bool = True, metadata=None):
    """
    Create or replace the role assignment of a principal.

    Concurrent or repeated calls for the same principal converge on the last
    writer: only role, tenant and active flag are replaced on conflict, so
    ``created_at`` and ``metadata`` of an existing assignment are preserved.

    Returns:
        The stored RoleAssignment.
    """
    RoleAssignment.objects.bulk_create(
        [
            RoleAssignment(
                principal=principal,
                role=role,
                tenant_id=tenant_id,
                active=active,
                metadata=metadata or {},
            )
        ],
        update_conflicts=True,
        unique_fields=["principal"],
        update_fields=["role", "tenant_id", "active", "updated_at"],
    )
    logger.info(f"Assigned role {role} (tenant {tenant_id}) to principal {principal.pk}")
    return RoleAssignment.objects.get(principal=principal)


def register_school_tenant(
    principal,
    name: str,
    code: str,
    province: str,
    municipality: str,
    address: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    settings: Optional[dict] = None,
) -> RegistrationResult:
    """
    Create a school and make ``principal`` its SCHOOL_ADMIN, atomically.

    Fails when the principal already owns a school, the code is taken, or
    the email is used by another school.
    """

    def _register():
        check_principal_matches(principal)

        if School.objects.filter(owner=principal).exists():
            raise RegistrationError("Utilizador já tem uma escola registada")
        if School.objects.filter(code=code).exists():
            raise RegistrationError(f"Código de escola já existe: {code}")
        if email and School.objects.filter(email=email).exists():
            raise RegistrationError(f"Email já está em uso por outra escola: {email}")

        school = School.objects.create(
            owner=principal,
            name=name,
            code=code,
            province=province,
            municipality=municipality,
            address=address,
            phone=phone,
            email=email,
            settings=settings or {},
        )
        assign_role(principal, RoleAssignment.SCHOOL_ADMIN, school.id)

        logger.info(f"Registered school {school.code} for principal {principal.pk}")
        return RegistrationResult.ok(school_id=str(school.id), code=school.code, name=school.name)

    return run_registration("register_school_tenant", _register)


def register_municipal_directorate(
    principal,
    name: str,
    province: str,
    municipality: str,
    email: str,
    phone: Optional[str] = None,
    position: Optional[str] = None,
    staff_number: Optional[str] = None,
) -> RegistrationResult:
    """Create a municipal directorate and give ``principal`` the MUNICIPAL_DIRECTORATE role."""

    def _register():
        check_principal_matches(principal)

        if MunicipalDirectorate.objects.filter(province=province, municipality=municipality).exists():
            raise RegistrationError(
                f"Já existe uma direcção municipal para {municipality} ({province})"
            )
        if MunicipalDirectorate.objects.filter(email=email).exists():
            raise RegistrationError(f"Email já está em uso por outra direcção: {email}")

        fields = {"position": position} if position else {}
        directorate = MunicipalDirectorate.objects.create(
            name=name,
            province=province,
            municipality=municipality,
            email=email,
            phone=phone,
            staff_number=staff_number,
            **fields,
        )
        assign_role(principal, RoleAssignment.MUNICIPAL_DIRECTORATE, directorate.id)
        return RegistrationResult.ok(directorate_id=str(directorate.id))

    return run_registration("register_municipal_directorate", _register)


def register_provincial_directorate(
    principal,
    name: str,
    province: str,
    email: str,
    phone: Optional[str] = None,
    position: Optional[str] = None,
    staff_number: Optional[str] = None,
) -> RegistrationResult:
    """Create a provincial directorate and give ``principal`` the PROVINCIAL_DIRECTORATE role."""

    def _register():
        check_principal_matches(principal)

        if ProvincialDirectorate.objects.filter(province=province).exists():
            raise RegistrationError(f"Já existe uma direcção provincial para {province}")
        if ProvincialDirectorate.objects.filter(email=email).exists():
            raise RegistrationError(f"Email já está em uso por outra direcção: {email}")

        fields = {"position": position} if position else {}
        directorate = ProvincialDirectorate.objects.create(
            name=name,
            province=province,
            email=email,
            phone=phone,
            staff_number=staff_number,
            **fields,
        )
        assign_role(principal, RoleAssignment.PROVINCIAL_DIRECTORATE, directorate.id)
        return RegistrationResult.ok(directorate_id=str(directorate.id))

    return run_registration("register_provincial_directorate", _register)


def invite_role(school_id: UUID, role: str, metadata: Optional[dict] = None) -> RoleAssignment:
    """
    Create an unclaimed role assignment inside a school.

    Runs with the caller's privileges: the insert policy only lets a school
    admin invite TEACHER, STUDENT or GUARDIAN into its own school.
    """
    if role not in RoleAssignment.INVITABLE_ROLES:
        raise RegistrationError(f"Role {role} cannot be granted by invitation")

    assignment = RoleAssignment.objects.create(
        principal=None, role=role, tenant_id=school_id, metadata=metadata or {}
    )
    logger.info(f"Created {role} invitation {assignment.id} for school {school_id}")
    return assignment


def claim_role_assignment(assignment_id: UUID, principal) -> RegistrationResult:
    """Link ``principal`` to a pending invitation."""

    def _claim():
        check_principal_matches(principal)

        assignment = (
            RoleAssignment.objects.select_for_update().filter(pk=assignment_id).first()
        )
        if assignment is None:
            raise RegistrationError("Convite não encontrado")
        if assignment.is_claimed:
            raise RegistrationError("Convite já foi utilizado")
        if RoleAssignment.objects.filter(principal=principal).exists():
            raise RegistrationError("Utilizador já tem um perfil atribuído")

        assignment.principal = principal
        assignment.save(update_fields=["principal", "updated_at"])
        return RegistrationResult.ok(
            role=assignment.role, tenant_id=str(assignment.tenant_id)
        )

    return run_registration("claim_role_assignment", _claim)
