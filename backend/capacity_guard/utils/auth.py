from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


def create_hook_token(
    *,
    caller: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a short-lived token a host integration presents on every hook call."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=5))
    payload = {"sub": caller, "iat": now, "exp": exp, "scope": "booking-hooks"}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_hook_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> str:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    if payload.get("scope") != "booking-hooks":
        raise ValueError("token not issued for booking hooks")
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise ValueError("token missing sub")
    return sub
