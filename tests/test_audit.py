"""
Tests for the privileged action log and the row change history.
"""

import uuid

from django.db import DatabaseError, transaction
from django.test import RequestFactory

import pytest
from rest_framework.exceptions import ValidationError

from apps.core.audit import get_client_ip, log_privileged_action
from apps.core.audit_models import RowChange, SuperadminAction
from apps.core.models import School
from apps.core.serializers import validate_action_details
from apps.core.superadmin import delete_school


@pytest.fixture
def reference(school_a):
    return {
        "school_id": str(school_a.id),
        "school_name": school_a.name,
        "school_code": school_a.code,
    }


@pytest.mark.django_db
class TestLogPrivilegedAction:
    def test_records_actor_and_request_metadata(self, acting_as, superadmin, school_a, reference):
        request = RequestFactory().get(
            "/", HTTP_X_FORWARDED_FOR="41.63.10.5, 10.0.0.1", HTTP_USER_AGENT="pytest"
        )

        with acting_as(superadmin):
            action = log_privileged_action(
                SuperadminAction.BLOCK_SCHOOL,
                target_school=school_a,
                details={**reference, "reason": "Falta de pagamento"},
                request=request,
            )

        action.refresh_from_db()
        assert action.actor_id == superadmin.pk
        assert action.ip_address == "41.63.10.5"
        assert action.user_agent == "pytest"
        assert action.action_details["reason"] == "Falta de pagamento"

    def test_defaults_without_request(self, acting_as, superadmin):
        with acting_as(superadmin):
            action = log_privileged_action(SuperadminAction.OTHER, details={"note": "manual"})

        assert (action.ip_address, action.user_agent) == ("unknown", "unknown")

    def test_unknown_action_type(self, acting_as, superadmin):
        with acting_as(superadmin):
            with pytest.raises(ValueError):
                log_privileged_action("DROP_DATABASE")

    def test_malformed_details(self, acting_as, superadmin, school_a):
        with acting_as(superadmin):
            with pytest.raises(ValidationError):
                log_privileged_action(
                    SuperadminAction.BLOCK_SCHOOL,
                    target_school=school_a,
                    details={"school_name": school_a.name},
                )

    def test_non_superadmin_cannot_log(self, acting_as, admin_a):
        with acting_as(admin_a):
            with pytest.raises(DatabaseError), transaction.atomic():
                log_privileged_action(SuperadminAction.OTHER)

        assert SuperadminAction.objects.count() == 0

    def test_non_superadmin_cannot_read_log(self, acting_as, superadmin, admin_a):
        log_privileged_action(SuperadminAction.OTHER, actor_id=superadmin.pk)

        with acting_as(admin_a):
            assert SuperadminAction.objects.count() == 0


@pytest.mark.django_db
class TestAppendOnly:
    @pytest.fixture
    def action(self, superadmin, school_a, reference):
        return log_privileged_action(
            SuperadminAction.VIEW_SCHOOL_DATA,
            target_school=school_a,
            details=reference,
            actor_id=superadmin.pk,
        )

    def test_update_is_rejected(self, action):
        with pytest.raises(DatabaseError, match="append-only"), transaction.atomic():
            SuperadminAction.objects.filter(pk=action.pk).update(ip_address="127.0.0.1")

    def test_delete_is_rejected(self, action):
        with pytest.raises(DatabaseError, match="append-only"), transaction.atomic():
            SuperadminAction.objects.filter(pk=action.pk).delete()

        assert SuperadminAction.objects.filter(pk=action.pk).exists()

    def test_reference_may_be_cleared(self, action):
        assert SuperadminAction.objects.filter(pk=action.pk).update(target_school=None) == 1

    def test_row_changes_are_append_only(self, school_a):
        change = RowChange.objects.filter(row_id=school_a.pk).first()

        with pytest.raises(DatabaseError), transaction.atomic():
            RowChange.objects.filter(pk=change.pk).delete()


@pytest.mark.django_db
class TestDeletedSchoolAudit:
    def test_log_survives_school_deletion(self, acting_as, superadmin, admin_a, school_a):
        school_id, name, code = school_a.id, school_a.name, school_a.code

        with acting_as(superadmin):
            delete_school(school_id, reason="Encerramento definitivo", create_backup=False)

        assert not School.objects.filter(pk=school_id).exists()
        action = SuperadminAction.objects.get(action_type=SuperadminAction.DELETE_SCHOOL)
        assert action.target_school_id is None
        assert action.actor_id == superadmin.pk
        assert action.action_details["school_id"] == str(school_id)
        assert action.action_details["school_name"] == name
        assert action.action_details["school_code"] == code
        assert action.action_details["backup_created"] is False

    def test_log_survives_actor_deletion(self, superadmin, school_a, reference):
        action = log_privileged_action(
            SuperadminAction.VIEW_SCHOOL_DATA, details=reference, actor_id=superadmin.pk
        )

        superadmin.delete()

        action.refresh_from_db()
        assert action.actor_id is None


@pytest.mark.django_db
class TestRowChanges:
    def test_insert_is_recorded(self, school_a):
        change = RowChange.objects.get(table_name="schools", row_id=school_a.pk)
        assert change.operation == RowChange.INSERT
        assert change.new_data["code"] == school_a.code
        assert change.old_data is None

    def test_update_records_principal(self, acting_as, admin_a, school_a):
        with acting_as(admin_a):
            School.objects.filter(pk=school_a.pk).update(phone="222333444")

        change = RowChange.objects.filter(
            table_name="schools", row_id=school_a.pk, operation=RowChange.UPDATE
        ).latest("created_at")
        assert change.principal_id == admin_a.pk
        assert change.new_data["phone"] == "222333444"

    def test_changes_in_one_transaction_are_ordered(self, school_a):
        for phone in ["222000001", "222000002", "222000003"]:
            School.objects.filter(pk=school_a.pk).update(phone=phone)

        phones = [
            change.new_data["phone"]
            for change in RowChange.objects.filter(
                table_name="schools", row_id=school_a.pk, operation=RowChange.UPDATE
            ).order_by("created_at")
        ]
        assert phones == ["222000001", "222000002", "222000003"]

    def test_delete_is_recorded(self, make_student, class_a):
        student = make_student(class_a)
        student_id = student.pk

        student.delete()

        change = RowChange.objects.get(
            table_name="students", row_id=student_id, operation=RowChange.DELETE
        )
        assert change.new_data is None
        assert change.old_data["full_name"] == student.full_name


class TestActionDetailSerializers:
    def test_block_requires_reason(self):
        with pytest.raises(ValidationError):
            validate_action_details(
                SuperadminAction.BLOCK_SCHOOL,
                {"school_id": str(uuid.uuid4()), "school_name": "A", "school_code": "A-1"},
            )

    def test_extra_keys_are_kept(self):
        school_id = uuid.uuid4()
        payload = validate_action_details(
            SuperadminAction.CREATE_SCHOOL,
            {
                "school_id": school_id,
                "school_name": "Escola",
                "school_code": "E-1",
                "origin": "import",
            },
        )

        assert payload["school_id"] == str(school_id)
        assert payload["origin"] == "import"

    def test_free_form_types_accept_any_object(self):
        assert validate_action_details(SuperadminAction.OTHER, {"a": [1, 2]}) == {"a": [1, 2]}

    def test_none_is_empty_payload(self):
        assert validate_action_details(SuperadminAction.OTHER, None) == {}

    def test_non_object_is_rejected(self):
        with pytest.raises(ValidationError):
            validate_action_details(SuperadminAction.OTHER, ["not", "an", "object"])

    def test_delete_details_allow_missing_backup(self):
        payload = validate_action_details(
            SuperadminAction.DELETE_SCHOOL,
            {
                "school_id": str(uuid.uuid4()),
                "school_name": "Escola",
                "school_code": "E-2",
                "reason": "",
                "backup_created": False,
                "backup_id": None,
            },
        )

        assert payload["backup_id"] is None


class TestClientIp:
    def test_remote_addr(self):
        request = RequestFactory().get("/", REMOTE_ADDR="197.149.1.1")
        assert get_client_ip(request) == "197.149.1.1"

    def test_forwarded_for_takes_first_hop(self):
        request = RequestFactory().get("/", HTTP_X_FORWARDED_FOR="41.63.1.1, 10.0.0.1")
        assert get_client_ip(request) == "41.63.1.1"
