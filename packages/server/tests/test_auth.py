"""
Tests for authentication and authorization.

Covers:
- JWT creation, decoding, expiry and tampering
- Actor role helpers and ensure_role
- Bearer token resolution to a profile
- Security headers and request id middleware
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt as pyjwt
import pytest
from fastapi import FastAPI
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.testclient import TestClient

from app.core.auth import (
    Actor,
    create_jwt,
    decode_jwt,
    ensure_role,
    get_current_actor,
    require_reviewer,
    require_student,
)
from app.core.errors import NotAuthenticated, PermissionDenied
from app.core.middleware import SECURITY_HEADERS, RequestLoggingMiddleware, SecurityHeadersMiddleware
from projtrack_shared.schemas.common import REVIEWER_ROLES, Role


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token = create_jwt(uid, "student")
        payload = decode_jwt(token)
        assert payload["sub"] == str(uid)
        assert payload["role"] == "student"
        assert "jti" in payload

    def test_expired_jwt_raises(self):
        token = create_jwt(uuid.uuid4(), "student", expires_delta=timedelta(seconds=-1))
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_jwt_raises(self):
        token = create_jwt(uuid.uuid4(), "faculty")
        tampered = token[:-5] + "XXXXX"
        with pytest.raises(pyjwt.PyJWTError):
            decode_jwt(tampered)

    def test_foreign_signature_raises(self):
        claims = {"sub": str(uuid.uuid4()), "role": "admin"}
        forged = pyjwt.encode(claims, "some-other-secret-of-sufficient-length-xx", algorithm="HS256")
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_jwt(forged)


# ---------------------------------------------------------------------------
# Unit Tests: Roles
# ---------------------------------------------------------------------------

class TestRoles:
    def test_reviewer_roles(self):
        assert REVIEWER_ROLES == {Role.FACULTY, Role.ADMIN}

    def test_actor_flags(self):
        student = Actor(uuid.uuid4(), Role.STUDENT)
        faculty = Actor(uuid.uuid4(), "faculty")
        admin = Actor(uuid.uuid4(), Role.ADMIN)
        assert student.is_student and not student.is_reviewer
        assert faculty.is_reviewer and not faculty.is_admin
        assert admin.is_reviewer and admin.is_admin

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Actor(uuid.uuid4(), "janitor")

    def test_ensure_role_requires_actor(self):
        with pytest.raises(NotAuthenticated) as exc_info:
            ensure_role(None, Role, "view projects")
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["code"] == "NOT_AUTHENTICATED"

    def test_ensure_role_rejects_other_roles(self):
        with pytest.raises(PermissionDenied) as exc_info:
            ensure_role(Actor(uuid.uuid4(), Role.STUDENT), REVIEWER_ROLES, "review documents")
        assert exc_info.value.status_code == 403
        assert "review documents" in exc_info.value.message

    def test_ensure_role_any_role(self):
        actor = Actor(uuid.uuid4(), Role.FACULTY)
        assert ensure_role(actor, Role, "view projects") is actor

    @pytest.mark.asyncio
    async def test_role_dependencies(self):
        student = Actor(uuid.uuid4(), Role.STUDENT)
        faculty = Actor(uuid.uuid4(), Role.FACULTY)
        assert await require_student(student) is student
        assert await require_reviewer(faculty) is faculty
        with pytest.raises(PermissionDenied):
            await require_reviewer(student)
        with pytest.raises(PermissionDenied):
            await require_student(faculty)


# ---------------------------------------------------------------------------
# Bearer token resolution
# ---------------------------------------------------------------------------

class TestCurrentActor:
    @pytest.mark.asyncio
    async def test_resolves_profile(self, session, faculty_profile):
        token = create_jwt(faculty_profile.id, faculty_profile.role)
        actor = await get_current_actor(_bearer(token), session)
        assert actor.id == faculty_profile.id
        assert actor.role == Role.FACULTY
        assert actor.email == "prof.curie@campus.edu"

    @pytest.mark.asyncio
    async def test_missing_token(self, session):
        with pytest.raises(NotAuthenticated):
            await get_current_actor(None, session)

    @pytest.mark.asyncio
    async def test_garbage_token(self, session):
        with pytest.raises(NotAuthenticated):
            await get_current_actor(_bearer("not.a.jwt"), session)

    @pytest.mark.asyncio
    async def test_unknown_profile(self, session):
        token = create_jwt(uuid.uuid4(), "student")
        with pytest.raises(NotAuthenticated):
            await get_current_actor(_bearer(token), session)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestRequestLoggingMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        return app

    def test_echoes_request_id(self):
        client = TestClient(self._make_app())
        resp = client.get("/test", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"

    def test_generates_request_id(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert len(resp.headers["X-Request-ID"]) == 32
