import uuid
from datetime import datetime, timedelta, timezone

import jwt


ALGORITHM = "HS256"
TOKEN_ISSUER = "vintage-shop"
TOKEN_AUDIENCE = "vintage-shop"


def create_access_token(
    user_id: str,
    role: str,
    *,
    secret_key: str,
    expires_delta: timedelta = timedelta(minutes=60),
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "exp": now + expires_delta,
        "iat": now,
        "nbf": now,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
        "jti": str(uuid.uuid4()),
        "type": "access",
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str) -> dict:
    """Decode and verify a JWT token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token,
        secret_key,
        algorithms=[ALGORITHM],
        issuer=TOKEN_ISSUER,
        audience=TOKEN_AUDIENCE,
    )


def verify_access_token(token: str, secret_key: str) -> dict | None:
    """Verify an access token and return its payload, or None if invalid."""
    try:
        payload = decode_token(token, secret_key)
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload
