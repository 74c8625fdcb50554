"""
Role cache maintenance.

The cache is kept in sync by the ``sync_role_cache`` trigger; the helpers
here exist for repair and monitoring. They call the SQL functions installed
by migration 0004 so that the trigger and manual repairs share one code
path.
"""

import logging
from typing import List, Optional
from uuid import UUID

from django.db import connection

from apps.core.models import RoleCache

logger = logging.getLogger(__name__)


def refresh_role_cache(principal_id: UUID) -> Optional[RoleCache]:
    """
    Recompute the cache entry of one principal from its role assignment.

    Returns:
        The refreshed RoleCache row, or None if the principal has no assignment.
    """
    with connection.cursor() as cursor:
        cursor.execute("SELECT refresh_role_cache(%s);", [str(principal_id)])
    return RoleCache.objects.filter(principal_id=principal_id).first()


def rebuild_role_cache() -> int:
    """
    Recompute the whole cache from role_assignments.

    Must run as the table owner (EXECUTE is revoked from the application role).

    Returns:
        Number of principals refreshed.
    """
    with connection.cursor() as cursor:
        cursor.execute("SELECT rebuild_role_cache();")
        count = cursor.fetchone()[0]
    logger.info("Role cache rebuilt", extra={"refreshed": count})
    return count


def find_cache_drift() -> List[dict]:
    """
    List principals whose cache entry disagrees with their role assignment.

    Returns:
        One dict per drifting principal with the expected and cached role,
        tenant and active flag. An empty list means the cache is consistent.
    """
    with connection.cursor() as cursor:
        cursor.execute(
            """
            SELECT principal_id, expected_role, cached_role,
                   expected_tenant_id, cached_tenant_id,
                   expected_active, cached_active
            FROM role_cache_drift
            ORDER BY principal_id;
            """
        )
        columns = [col[0] for col in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]


def get_cached_role(principal_id: UUID) -> Optional[RoleCache]:
    return RoleCache.objects.filter(principal_id=principal_id).first()
