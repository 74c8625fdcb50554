"""
Principal context management utilities for Row-Level Security (RLS).

This module sets and reads the PostgreSQL session variables that every RLS
policy and role helper function depends on:

- ``app.current_principal``: the authenticated principal of the session
- ``app.bypass_rls``: system context for registration entry points and
  maintenance jobs
"""

import logging
from contextlib import contextmanager
from typing import Optional
from uuid import UUID

from django.db import connection

logger = logging.getLogger(__name__)


def set_principal_context(principal_id: Optional[UUID]) -> None:
    """
    Set the authenticated principal for the current database session.

    Args:
        principal_id: UUID of the principal. If None, the session becomes
            anonymous and every role helper returns false.

    Example:
        >>> from apps.core.principal_context import set_principal_context
        >>> set_principal_context(request.user.pk)
    """
    with connection.cursor() as cursor:
        if principal_id is None:
            cursor.execute("SELECT set_config('app.current_principal', '', false);")
            logger.debug("Cleared principal context")
        else:
            cursor.execute("SELECT set_principal_context(%s);", [str(principal_id)])
            logger.debug(f"Set principal context to: {principal_id}")


def get_current_principal() -> Optional[UUID]:
    """
    Get the authenticated principal from the database session.

    Returns:
        UUID of the current principal, or None for an anonymous session.
    """
    with connection.cursor() as cursor:
        cursor.execute("SELECT current_principal_id();")
        result = cursor.fetchone()
        if result and result[0]:
            principal_uuid = result[0]
            if isinstance(principal_uuid, UUID):
                return principal_uuid
            return UUID(str(principal_uuid))
        return None


def enable_rls_bypass() -> None:
    """
    Enter system context for the current session.

    Every table accepts reads and writes while the bypass is on. Only
    registration entry points and maintenance jobs should use it.
    """
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('app.bypass_rls', 'true', false);")
        logger.warning("RLS bypass enabled - running in system context")


def disable_rls_bypass() -> None:
    """Leave system context for the current session."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('app.bypass_rls', 'false', false);")
        logger.debug("RLS bypass disabled - principal isolation restored")


def is_rls_bypassed() -> bool:
    """
    Check if the session is running in system context.

    Returns:
        True if RLS bypass is enabled, False otherwise.
    """
    with connection.cursor() as cursor:
        cursor.execute("SELECT is_rls_bypassed();")
        result = cursor.fetchone()
        return result[0] if result else False


@contextmanager
def principal_context(principal_id: Optional[UUID]):
    """
    Context manager for temporarily acting as another principal.

    Restores the previous principal and bypass state when exiting.

    Example:
        >>> from apps.core.principal_context import principal_context
        >>> with principal_context(teacher.principal_id):
        ...     visible = Student.objects.count()
    """
    previous_principal = get_current_principal()
    previous_bypass = is_rls_bypassed()

    try:
        set_principal_context(principal_id)
        yield
    finally:
        set_principal_context(previous_principal)
        if previous_bypass:
            enable_rls_bypass()
        else:
            disable_rls_bypass()


@contextmanager
def bypass_rls():
    """
    Context manager for temporarily running in system context.

    Restores the previous bypass state when exiting.

    Example:
        >>> from apps.core.principal_context import bypass_rls
        >>> with bypass_rls():
        ...     School.objects.create(...)
    """
    previous_bypass = is_rls_bypassed()

    try:
        enable_rls_bypass()
        yield
    finally:
        if not previous_bypass:
            disable_rls_bypass()


def clear_principal_context() -> None:
    """Clear the principal and leave system context."""
    set_principal_context(None)
    disable_rls_bypass()
    logger.debug("Principal context cleared")
