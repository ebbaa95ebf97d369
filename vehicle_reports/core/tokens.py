# vehicle_reports/core/tokens.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from jwt import InvalidTokenError

from vehicle_reports.core.errors import ValidationError

DEVELOPER_SCOPE = "developer"


def vehicle_scope(token_id: int) -> str:
    return f"vehicle:{token_id}"


@dataclass(frozen=True)
class Credential:
    """Token bearer emitido por el proveedor, con su ámbito y caducidad."""

    token: str
    scope: str
    expiry: datetime | None = None
    token_type: str = "Bearer"

    def expires_in(self, now: datetime | None = None) -> int | None:
        if self.expiry is None:
            return None
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.expiry - now).total_seconds()))

    @classmethod
    def from_response(
        cls, token: str, scope: str, expires_in: int | None = None,
        token_type: str | None = None, now: datetime | None = None,
    ) -> "Credential":
        # Si el proveedor no manda expires_in, se intenta leer 'exp' del propio JWT
        if expires_in is not None:
            now = now or datetime.now(timezone.utc)
            expiry = now + timedelta(seconds=int(expires_in))
        else:
            expiry = expires_at(token)
        return cls(token=token, scope=scope, expiry=expiry, token_type=token_type or "Bearer")


def _claims(token: str) -> dict:
    """Decodifica sin verificar firma: solo para leer claims, nunca como control de seguridad."""
    return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})


def expires_at(token: str | None) -> datetime | None:
    if not token:
        return None
    try:
        exp = _claims(token).get("exp")
    except InvalidTokenError:
        return None
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def is_expired(token: str | None, now: datetime | None = None) -> bool:
    """True si el token no tiene 'exp' legible o si ya ha pasado."""
    exp = expires_at(token)
    if exp is None:
        return True
    now = now or datetime.now(timezone.utc)
    return exp <= now


def privileged_address(user_jwt: str) -> str:
    try:
        address = _claims(user_jwt).get("ethereum_address")
    except InvalidTokenError:
        raise ValidationError("Invalid JWT token")
    if not address:
        raise ValidationError("No ethereum_address found in JWT claims")
    return address
