"""JWT identity token validation

Tokens are issued by the external authentication provider; this service only
verifies them. The verified claims become the trusted ``Actor`` that every
vault operation is evaluated against.

JWT Token Claims Structure:
===========================

Standard JWT Claims:
- sub (Subject): Actor ID (patient, doctor or staff identifier)
  Example: "pat_7f3a91"
  Purpose: Identifies who is acting; compared against document ownership

- exp (Expiration): Unix timestamp when token expires
  Purpose: Enforce token lifetime (checked when present)

Custom Claims:
- role: Actor role
  Values: "PATIENT" | "DOCTOR" | "STAFF"
  Purpose: Selects the access policy rows that apply

Security Properties:
- Algorithm: JWT_ALGORITHM (HS256 by default, HMAC-SHA256 symmetric signing)
- Secret: JWT_SECRET setting shared with the authentication provider
- Stateless validation (no database lookup required for auth)

Example Token Payload:
{
  "sub": "pat_7f3a91",
  "role": "PATIENT",
  "iat": 1704368400,
  "exp": 1704372000
}
"""

from typing import Any, Dict

import jwt

from config import get_settings


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Args:
        token: JWT token string

    Returns:
        dict: Decoded token payload with claims

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid or tampered
    """
    settings = get_settings()

    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise jwt.ExpiredSignatureError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")
