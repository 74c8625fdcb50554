"""
Role tests for the session principal.

Thin wrappers around the SQL helper functions installed by the core
migrations, so that Python code and RLS policies answer "who is the
current principal?" from the same place: the role cache.
"""

from functools import wraps
from typing import Optional
from uuid import UUID

from django.db import connection

from apps.core.exceptions import PrivilegeRequired


def _scalar(function_name: str):
    with connection.cursor() as cursor:
        cursor.execute(f"SELECT {function_name}();")
        result = cursor.fetchone()
        return result[0] if result else None


def _as_uuid(value) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def current_role() -> Optional[str]:
    """Role of the session principal, or None (anonymous, no role, inactive)."""
    return _scalar("current_principal_role")


def is_superadmin() -> bool:
    return bool(_scalar("is_superadmin"))


def is_school_admin() -> bool:
    return bool(_scalar("is_school_admin"))


def is_teacher() -> bool:
    return bool(_scalar("is_teacher"))


def is_student() -> bool:
    return bool(_scalar("is_student"))


def is_guardian() -> bool:
    return bool(_scalar("is_guardian"))


def is_municipal_directorate() -> bool:
    return bool(_scalar("is_municipal_directorate"))


def is_provincial_directorate() -> bool:
    return bool(_scalar("is_provincial_directorate"))


def resolve_current_tenant_scope() -> Optional[UUID]:
    """
    Tenant scope of the session principal.

    Returns:
        The school id for school-bound roles, the directorate id for
        directorate roles, and None for SUPERADMIN, anonymous sessions and
        inactive assignments.
    """
    return _as_uuid(_scalar("current_tenant_id"))


def is_school_in_directorate_scope(school_id: UUID) -> bool:
    """True when the school lies in the geographic scope of the current directorate."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT is_school_in_directorate_scope(%s);", [str(school_id)])
        result = cursor.fetchone()
        return bool(result and result[0])


def superadmin_required(func):
    """
    Decorator for service functions reserved to SUPERADMIN.

    Usage:
        @superadmin_required
        def block_school(school_id, reason):
            ...

    Raises:
        PrivilegeRequired: if the session principal is not an active superadmin
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        if not is_superadmin():
            raise PrivilegeRequired(f"{func.__name__} requires an active SUPERADMIN principal")
        return func(*args, **kwargs)

    return wrapper
