"""FastAPI dependencies for authentication.

Turns the bearer token into the trusted ``Actor`` (actor_id, role). There is
no user lookup: identity and role come entirely from the verified token.

Usage:
    @router.get("/documents/{document_id}")
    def get_document(document_id: str, actor: Actor = Depends(get_current_actor)):
        ...
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from domain.documents.entities import Actor, ActorRole
from .jwt import decode_token


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Extract and validate the JWT, returning the authenticated actor.

    Raises:
        HTTPException 401: If token is missing, invalid, expired, or carries
            an unknown role
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(str(e))

    actor_id = payload.get("sub")
    if not actor_id or not isinstance(actor_id, str):
        raise _unauthorized("Invalid token: missing actor ID claim")

    try:
        role = ActorRole(payload.get("role"))
    except ValueError:
        raise _unauthorized(f"Invalid token claims: unknown role {payload.get('role')!r}")

    return Actor(actor_id=actor_id, role=role)
