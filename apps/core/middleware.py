"""
Principal context middleware.

Propagates the authenticated principal to the PostgreSQL session variable
read by every Row-Level Security policy, and refuses requests from members
of a blocked or deactivated school.
"""

import logging
from typing import Optional

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.core.models import RoleAssignment, School
from apps.core.principal_context import clear_principal_context, set_principal_context
from apps.core.role_cache import get_cached_role

logger = logging.getLogger(__name__)


class PrincipalContextMiddleware(MiddlewareMixin):
    """
    Middleware to set the principal context for each request.

    This middleware:
    1. Clears any context left on the connection by a previous request
    2. Sets app.current_principal for authenticated users
    3. Rejects members of blocked or inactive schools
    4. Clears the context again once the response is ready
    """

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        clear_principal_context()

        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            request.principal_id = None
            return None

        set_principal_context(user.pk)
        request.principal_id = user.pk
        logger.debug(f"Principal context set for request: {user.pk}")

        cache_entry = get_cached_role(user.pk)
        request.role = cache_entry.role if cache_entry and cache_entry.active else None

        if cache_entry is None or cache_entry.role not in RoleAssignment.SCHOOL_ROLES:
            return None

        school = School.objects.filter(pk=cache_entry.tenant_id).only("active", "blocked").first()
        if school is None:
            return None

        if school.blocked:
            logger.warning(f"Access attempt to blocked school {school.pk} by {user.pk}")
            clear_principal_context()
            return JsonResponse(
                {
                    "error": "Your school has been blocked. Please contact support.",
                    "school_status": "blocked",
                },
                status=403,
            )

        if not school.active:
            logger.warning(f"Access attempt to inactive school {school.pk} by {user.pk}")
            clear_principal_context()
            return JsonResponse(
                {
                    "error": "Your school is inactive. Please contact support.",
                    "school_status": "inactive",
                },
                status=403,
            )

        return None

    def process_response(self, request: HttpRequest, response: HttpResponse) -> HttpResponse:
        # Clear principal context to prevent leakage between requests
        try:
            clear_principal_context()
        except Exception as e:
            logger.error(f"Error clearing principal context: {e}")

        return response

    def process_exception(
        self, request: HttpRequest, exception: Exception
    ) -> Optional[HttpResponse]:
        try:
            clear_principal_context()
        except Exception as e:
            logger.error(f"Error clearing principal context during exception handling: {e}")

        return None
