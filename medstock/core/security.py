from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from medstock.core.config import get_settings

settings = get_settings()


def create_access_token(
    subject: str,
    email: str | None = None,
    expires_delta_minutes: int | None = None,
) -> str:
    """
    Mint a bearer token the same shape the identity provider issues
    (subject id + email). Used by the setup scripts and the test-suite.
    """
    if expires_delta_minutes is None:
        expires_delta_minutes = settings.access_token_expire_minutes

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_delta_minutes)
    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "email": email,
        "exp": expire,
    }
    if settings.identity_audience:
        to_encode["aud"] = settings.identity_audience

    return jwt.encode(
        to_encode, settings.identity_secret_key, algorithm=settings.identity_algorithm
    )


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an identity token.
    Raises ValueError with descriptive message if token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.identity_secret_key,
            algorithms=[settings.identity_algorithm],
            audience=settings.identity_audience,
            options={"verify_aud": settings.identity_audience is not None},
        )
    except JWTError as exc:
        error_str = str(exc).lower()
        if "expired" in error_str:
            raise ValueError("Sessão expirada. Faça login novamente.") from None
        raise ValueError("Token inválido") from exc
    return payload
