"""
Serializers for superadmin action detail payloads.

``SuperadminAction.action_details`` is a discriminated union keyed by
``action_type``: each known type has a serializer describing its payload;
any other type accepts a free-form JSON object. The database stores the
validated payload verbatim.
"""

from rest_framework import serializers

from .models import SuperadminAction


class SchoolReferenceSerializer(serializers.Serializer):
    """Business identifiers that keep an audit record meaningful after deletion."""

    school_id = serializers.UUIDField()
    school_name = serializers.CharField(max_length=255)
    school_code = serializers.CharField(max_length=50)


class BlockSchoolDetailsSerializer(SchoolReferenceSerializer):
    reason = serializers.CharField()


class UnblockSchoolDetailsSerializer(SchoolReferenceSerializer):
    previous_reason = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class SchoolStatusDetailsSerializer(SchoolReferenceSerializer):
    previous_active = serializers.BooleanField()
    active = serializers.BooleanField()


class EditSchoolDetailsSerializer(SchoolReferenceSerializer):
    changed_fields = serializers.DictField(child=serializers.JSONField())


class DeleteSchoolDetailsSerializer(SchoolReferenceSerializer):
    reason = serializers.CharField(allow_blank=True)
    backup_created = serializers.BooleanField()
    backup_id = serializers.UUIDField(required=False, allow_null=True)


class RestoreSchoolDetailsSerializer(SchoolReferenceSerializer):
    backup_id = serializers.UUIDField()
    restored_rows = serializers.IntegerField(min_value=0)


ACTION_DETAIL_SERIALIZERS = {
    SuperadminAction.BLOCK_SCHOOL: BlockSchoolDetailsSerializer,
    SuperadminAction.UNBLOCK_SCHOOL: UnblockSchoolDetailsSerializer,
    SuperadminAction.ACTIVATE_SCHOOL: SchoolStatusDetailsSerializer,
    SuperadminAction.DEACTIVATE_SCHOOL: SchoolStatusDetailsSerializer,
    SuperadminAction.EDIT_SCHOOL: EditSchoolDetailsSerializer,
    SuperadminAction.CREATE_SCHOOL: SchoolReferenceSerializer,
    SuperadminAction.VIEW_SCHOOL_DATA: SchoolReferenceSerializer,
    SuperadminAction.DELETE_SCHOOL: DeleteSchoolDetailsSerializer,
    SuperadminAction.RESTORE_SCHOOL: RestoreSchoolDetailsSerializer,
}


def validate_action_details(action_type, details):
    """
    Validate a detail payload against the serializer of its action type.

    Args:
        action_type: One of SuperadminAction.ACTION_CHOICES
        details: Payload to validate (a dict, or None for an empty payload)

    Returns:
        dict: the payload with its schema fields normalised (UUIDs rendered
            as strings)

    Raises:
        rest_framework.exceptions.ValidationError: if the payload does not
            match the schema of its action type, or is not a JSON object
    """
    details = {} if details is None else details
    if not isinstance(details, dict):
        raise serializers.ValidationError({"action_details": "Expected a JSON object."})

    serializer_class = ACTION_DETAIL_SERIALIZERS.get(action_type)
    if serializer_class is None:
        return serializers.JSONField().to_internal_value(details)

    serializer = serializer_class(data=details)
    serializer.is_valid(raise_exception=True)

    # Keys outside the schema are kept as given
    payload = dict(details)
    payload.update(serializer.data)
    return payload


class SuperadminActionSerializer(serializers.ModelSerializer):
    """Read-only representation of an audit record (exports, admin listings)."""

    actor_email = serializers.EmailField(source="actor.email", read_only=True, default=None)

    class Meta:
        model = SuperadminAction
        fields = [
            "id",
            "actor",
            "actor_email",
            "action_type",
            "target_school",
            "action_details",
            "ip_address",
            "user_agent",
            "created_at",
        ]
        read_only_fields = fields
