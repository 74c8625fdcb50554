"""
Privileged school lifecycle operations.

Every operation requires an active SUPERADMIN in the role cache and writes a
SuperadminAction record. Unlike registration entry points, failures here
propagate: the caller is trusted infrastructure and a partial result must
never be committed.
"""

import json
import logging

from django.core import serializers
from django.db import transaction
from django.utils import timezone

from apps.core.audit import log_privileged_action
from apps.core.exceptions import SchoolNotFound
from apps.core.models import RoleAssignment, School, SchoolBackup, SuperadminAction
from apps.core.permissions import superadmin_required
from apps.core.principal_context import get_current_principal

logger = logging.getLogger(__name__)


def _get_school(school_id, for_update=True):
    queryset = School.objects.select_for_update() if for_update else School.objects.all()
    school = queryset.filter(pk=school_id).first()
    if school is None:
        raise SchoolNotFound(f"School {school_id} does not exist")
    return school


def _school_reference(school):
    return {
        "school_id": str(school.id),
        "school_name": school.name,
        "school_code": school.code,
    }


@superadmin_required
@transaction.atomic
def block_school(school_id, reason, request=None):
    """Block a school: its members keep their roles but lose access."""
    school = _get_school(school_id)
    school.blocked = True
    school.blocked_reason = reason
    school.blocked_at = timezone.now()
    school.blocked_by_id = get_current_principal()
    school.save(
        update_fields=["blocked", "blocked_reason", "blocked_at", "blocked_by", "updated_at"]
    )

    log_privileged_action(
        SuperadminAction.BLOCK_SCHOOL,
        target_school=school,
        details={**_school_reference(school), "reason": reason},
        request=request,
    )
    logger.warning(f"School {school.code} blocked: {reason}")
    return school


@superadmin_required
@transaction.atomic
def unblock_school(school_id, request=None):
    school = _get_school(school_id)
    previous_reason = school.blocked_reason

    school.blocked = False
    school.blocked_reason = None
    school.blocked_at = None
    school.blocked_by = None
    school.save(
        update_fields=["blocked", "blocked_reason", "blocked_at", "blocked_by", "updated_at"]
    )

    log_privileged_action(
        SuperadminAction.UNBLOCK_SCHOOL,
        target_school=school,
        details={**_school_reference(school), "previous_reason": previous_reason},
        request=request,
    )
    logger.info(f"School {school.code} unblocked")
    return school


@superadmin_required
@transaction.atomic
def set_school_active(school_id, active, request=None):
    school = _get_school(school_id)
    previous_active = school.active

    school.active = active
    school.save(update_fields=["active", "updated_at"])

    action_type = (
        SuperadminAction.ACTIVATE_SCHOOL if active else SuperadminAction.DEACTIVATE_SCHOOL
    )
    log_privileged_action(
        action_type,
        target_school=school,
        details={**_school_reference(school), "previous_active": previous_active, "active": active},
        request=request,
    )
    return school


def _collect_school_rows(school):
    """
    Every row owned by the school, parents first.

    Role assignments are listed before teachers: restoring a teacher with a
    linked principal upserts its TEACHER assignment by trigger.
    """
    from apps.academics.models import (
        Discipline,
        SchoolClass,
        Student,
        Teacher,
        TeacherClassDiscipline,
    )

    return [
        [school],
        RoleAssignment.objects.filter(tenant_id=school.id),
        Teacher.objects.filter(school=school),
        SchoolClass.objects.filter(school=school),
        Discipline.objects.filter(school_class__school=school),
        Student.objects.filter(school_class__school=school),
        TeacherClassDiscipline.objects.filter(school_class__school=school),
    ]


def _holds_other_role(principal_id, school_id):
    """True when linking ``principal_id`` as a teacher of ``school_id`` would be refused."""
    if principal_id is None:
        return False
    return (
        RoleAssignment.objects.filter(principal_id=principal_id)
        .exclude(role=RoleAssignment.TEACHER, tenant_id=school_id)
        .exists()
    )


def create_school_backup(school, reason=""):
    """Snapshot a school and its hierarchy as Django JSON serialization."""
    payload = []
    for rows in _collect_school_rows(school):
        payload.extend(json.loads(serializers.serialize("json", rows)))

    backup = SchoolBackup.objects.create(
        school_id=school.id,
        school_name=school.name,
        school_code=school.code,
        payload=payload,
        reason=reason,
        deleted_by_id=get_current_principal(),
    )
    logger.info(f"Backup {backup.id} of school {school.code}: {len(payload)} rows")
    return backup


@superadmin_required
@transaction.atomic
def delete_school(school_id, reason, create_backup=True, request=None):
    """
    Delete a school and, by cascade, its whole hierarchy.

    The audit record is written before the delete and carries the school's
    name and code; afterwards its ``target_school`` is NULL.

    Returns:
        SchoolBackup or None
    """
    school = _get_school(school_id)

    backup = create_school_backup(school, reason) if create_backup else None

    log_privileged_action(
        SuperadminAction.DELETE_SCHOOL,
        target_school=school,
        details={
            **_school_reference(school),
            "reason": reason,
            "backup_created": backup is not None,
            "backup_id": str(backup.id) if backup else None,
        },
        request=request,
    )

    school.delete()
    logger.warning(f"School {school.code} deleted: {reason}")
    return backup


@superadmin_required
@transaction.atomic
def restore_school(backup_id, request=None):
    """
    Re-create a deleted school from its backup.

    Role assignments whose principal has meanwhile received another role
    are skipped, and such a principal is not re-linked to its teacher row.

    Raises:
        SchoolNotFound: if the backup does not exist or was already restored
    """
    from apps.academics.models import Teacher

    backup = SchoolBackup.objects.select_for_update().filter(pk=backup_id).first()
    if backup is None:
        raise SchoolNotFound(f"Backup {backup_id} does not exist")
    if backup.is_restored:
        raise SchoolNotFound(f"Backup {backup_id} was already restored")

    restored = 0
    for deserialized in serializers.deserialize("json", json.dumps(backup.payload)):
        obj = deserialized.object
        if (
            isinstance(obj, RoleAssignment)
            and obj.principal_id is not None
            and RoleAssignment.objects.filter(principal_id=obj.principal_id).exists()
        ):
            logger.warning(
                f"Skipping role assignment {obj.pk}: principal {obj.principal_id} has another role"
            )
            continue
        if isinstance(obj, Teacher) and _holds_other_role(obj.principal_id, obj.school_id):
            logger.warning(
                f"Restoring teacher {obj.pk} unlinked: principal {obj.principal_id} has another role"
            )
            obj.principal_id = None
        deserialized.save()
        restored += 1

    backup.restored_at = timezone.now()
    backup.restored_by_id = get_current_principal()
    backup.save(update_fields=["restored_at", "restored_by"])

    school = _get_school(backup.school_id, for_update=False)
    log_privileged_action(
        SuperadminAction.RESTORE_SCHOOL,
        target_school=school,
        details={
            **_school_reference(school),
            "backup_id": str(backup.id),
            "restored_rows": restored,
        },
        request=request,
    )
    logger.info(f"School {school.code} restored from backup {backup.id} ({restored} rows)")
    return school
