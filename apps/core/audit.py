"""
Audit logging for privileged (SUPERADMIN) actions.

Records are append-only: the database rejects updates and deletes. When an
action is followed by the deletion of its target school, the record must be
written first and must carry the school's name and code in its details,
because ``target_school`` becomes NULL once the school is gone.
"""

import logging

from apps.core.models import SuperadminAction
from apps.core.principal_context import get_current_principal
from apps.core.serializers import SuperadminActionSerializer, validate_action_details

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Extract client IP address from request.

    Args:
        request: HTTP request object

    Returns:
        str: Client IP address
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR")
    return ip


def log_privileged_action(action_type, target_school=None, details=None, request=None, actor_id=None):
    """
    Append one record to the privileged action log.

    Callable only in contexts already gated by a superadmin check: the
    insert policy rejects any other principal, and the error propagates.

    Args:
        action_type: One of SuperadminAction.ACTION_CHOICES
        target_school: School affected by the action (optional)
        details: Structured payload, validated against the action type
        request: HTTP request object (optional, for IP and user agent)
        actor_id: Acting principal; defaults to the session principal

    Returns:
        SuperadminAction: the created record

    Raises:
        ValueError: if action_type is not a known action type
        rest_framework.exceptions.ValidationError: if details are malformed
    """
    valid_types = {choice[0] for choice in SuperadminAction.ACTION_CHOICES}
    if action_type not in valid_types:
        raise ValueError(f"Unknown action type: {action_type}")

    payload = validate_action_details(action_type, details)

    if actor_id is None:
        actor_id = get_current_principal()

    ip_address = "unknown"
    user_agent = "unknown"
    if request is not None:
        ip_address = get_client_ip(request) or "unknown"
        user_agent = request.META.get("HTTP_USER_AGENT") or "unknown"

    action = SuperadminAction.objects.create(
        actor_id=actor_id,
        action_type=action_type,
        target_school=target_school,
        action_details=payload,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    logger.info(
        f"Privileged action {action_type} by {actor_id}",
        extra={
            "action_id": str(action.id),
            "target_school_id": str(target_school.pk) if target_school else None,
        },
    )
    return action


def export_superadmin_actions(school_id=None, request=None):
    """
    Serialize the privileged action log, optionally for one school.

    The export itself is recorded as an EXPORT_DATA action.

    Returns:
        list: serialized SuperadminAction records, newest first
    """
    queryset = SuperadminAction.objects.select_related("actor")
    if school_id is not None:
        queryset = queryset.filter(target_school_id=school_id)

    records = SuperadminActionSerializer(queryset, many=True).data

    log_privileged_action(
        SuperadminAction.EXPORT_DATA,
        details={
            "export": "superadmin_actions",
            "school_id": str(school_id) if school_id else None,
            "records": len(records),
        },
        request=request,
    )
    return list(records)
