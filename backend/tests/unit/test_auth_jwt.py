"""Unit tests for JWT identity token validation

Tests cover:
- Token decoding and validation
- Token expiration handling
- Invalid token handling
- Actor extraction (actor_id, role) from verified claims
"""

import os
import time

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from auth.dependencies import get_current_actor
from auth.jwt import decode_token
from domain.documents.entities import Actor, ActorRole


def _token(payload, secret=None, algorithm="HS256"):
    return jwt.encode(payload, secret or os.environ["JWT_SECRET"], algorithm=algorithm)


def _credentials(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:
    """Test JWT token decoding and validation"""

    def test_decode_valid_token(self):
        now = int(time.time())
        token = _token({"sub": "doc_smith", "role": "DOCTOR", "iat": now, "exp": now + 60})

        payload = decode_token(token)

        assert payload["sub"] == "doc_smith"
        assert payload["role"] == "DOCTOR"

    def test_decode_expired_token(self):
        """Test decoding expired token raises ExpiredSignatureError"""
        now = int(time.time())
        token = _token({"sub": "doc_smith", "role": "DOCTOR", "iat": now - 120, "exp": now - 60})

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token)

    def test_decode_wrong_secret(self):
        token = _token({"sub": "doc_smith", "role": "DOCTOR"}, secret="another-secret-of-sufficient-length-for-hs256")

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token)

    def test_decode_tampered_token(self):
        token = _token({"sub": "pat_alice", "role": "PATIENT"})
        header, payload, signature = token.split(".")
        forged = _token({"sub": "pat_alice", "role": "STAFF"}).split(".")[1]

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(f"{header}.{forged}.{signature}")

    def test_decode_missing_subject(self):
        token = _token({"role": "STAFF"})

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token)

    def test_decode_garbage(self):
        with pytest.raises(jwt.InvalidTokenError):
            decode_token("not-a-jwt")

    def test_none_algorithm_rejected(self):
        token = jwt.encode({"sub": "staff_1", "role": "STAFF"}, None, algorithm="none")

        with pytest.raises(jwt.InvalidTokenError):
            decode_token(token)


class TestGetCurrentActor:
    """Test the FastAPI dependency that yields the trusted actor"""

    @pytest.mark.parametrize("role", ["PATIENT", "DOCTOR", "STAFF"])
    def test_valid_token(self, role):
        actor = get_current_actor(_credentials(_token({"sub": "actor_1", "role": role})))

        assert actor == Actor(actor_id="actor_1", role=ActorRole(role))

    def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_actor(None)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers["WWW-Authenticate"] == "Bearer"

    def test_expired_token(self):
        now = int(time.time())
        token = _token({"sub": "actor_1", "role": "DOCTOR", "exp": now - 10})

        with pytest.raises(HTTPException) as exc_info:
            get_current_actor(_credentials(token))
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_unknown_role(self):
        token = _token({"sub": "actor_1", "role": "ADMIN"})

        with pytest.raises(HTTPException) as exc_info:
            get_current_actor(_credentials(token))
        assert exc_info.value.status_code == 401

    def test_missing_role(self):
        token = _token({"sub": "actor_1"})

        with pytest.raises(HTTPException) as exc_info:
            get_current_actor(_credentials(token))
        assert exc_info.value.status_code == 401
