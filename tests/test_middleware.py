"""
Tests for the principal context middleware.
"""

import json
from unittest.mock import Mock

from django.contrib.auth.models import AnonymousUser
from django.http import HttpResponse
from django.test import RequestFactory

import pytest

from apps.core.middleware import PrincipalContextMiddleware
from apps.core.models import School
from apps.core.principal_context import get_current_principal, set_principal_context


@pytest.fixture
def middleware():
    return PrincipalContextMiddleware(get_response=lambda r: Mock())


def _request(user):
    request = RequestFactory().get("/api/alunos/")
    request.user = user
    return request


@pytest.mark.django_db
class TestPrincipalContextMiddleware:
    def test_anonymous_request_has_no_principal(self, middleware, make_principal):
        set_principal_context(make_principal().pk)
        request = _request(AnonymousUser())

        assert middleware.process_request(request) is None

        assert request.principal_id is None
        assert get_current_principal() is None

    def test_authenticated_request_sets_principal(self, middleware, admin_a):
        request = _request(admin_a)

        assert middleware.process_request(request) is None

        assert request.principal_id == admin_a.pk
        assert request.role == "SCHOOL_ADMIN"
        assert get_current_principal() == admin_a.pk

    def test_principal_without_role(self, middleware, make_principal):
        request = _request(make_principal())

        assert middleware.process_request(request) is None
        assert request.role is None

    def test_blocked_school_is_refused(self, middleware, teacher_a, school_a):
        School.objects.filter(pk=school_a.pk).update(blocked=True, blocked_reason="Auditoria")

        response = middleware.process_request(_request(teacher_a.principal))

        assert response.status_code == 403
        assert json.loads(response.content)["school_status"] == "blocked"
        assert get_current_principal() is None

    def test_inactive_school_is_refused(self, middleware, admin_a, school_a):
        School.objects.filter(pk=school_a.pk).update(active=False)

        response = middleware.process_request(_request(admin_a))

        assert response.status_code == 403
        assert json.loads(response.content)["school_status"] == "inactive"

    def test_directorate_is_not_bound_to_school_status(self, middleware, municipal_viana, school_a):
        School.objects.filter(pk=school_a.pk).update(blocked=True)

        assert middleware.process_request(_request(municipal_viana)) is None

    def test_response_clears_context(self, middleware, admin_a):
        request = _request(admin_a)
        middleware.process_request(request)

        response = middleware.process_response(request, HttpResponse())

        assert response.status_code == 200
        assert get_current_principal() is None

    def test_exception_clears_context(self, middleware, admin_a):
        request = _request(admin_a)
        middleware.process_request(request)

        assert middleware.process_exception(request, RuntimeError("boom")) is None
        assert get_current_principal() is None
