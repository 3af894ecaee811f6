from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import base64
import hashlib
import hmac
import json
from typing import Any


def _urlsafe_b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _urlsafe_b64decode(raw: str) -> bytes:
    padding = "=" * ((4 - len(raw) % 4) % 4)
    return base64.urlsafe_b64decode((raw + padding).encode("ascii"))


@dataclass(frozen=True)
class AuthTokenPayload:
    sub: str
    exp: int
    iat: int
    typ: str
    jti: str

    def to_dict(self) -> dict[str, Any]:
        return {"sub": self.sub, "exp": self.exp, "iat": self.iat, "typ": self.typ, "jti": self.jti}


class JWTManager:
    """HS256 bearer tokens shared with the auth service.

    This service only verifies tokens; ``issue_access_token`` exists for
    local tooling and tests.
    """

    def __init__(self, secret: str, access_minutes: int = 15, leeway_seconds: int = 0) -> None:
        if not secret:
            raise ValueError("JWT secret cannot be empty")
        self._secret = secret.encode("utf-8")
        self._access_minutes = access_minutes
        self._leeway_seconds = leeway_seconds

    def issue_access_token(self, subject: str, jti: str) -> str:
        now = datetime.now(timezone.utc)
        payload = AuthTokenPayload(
            sub=subject,
            iat=int(now.timestamp()),
            exp=int((now + timedelta(minutes=self._access_minutes)).timestamp()),
            typ="access",
            jti=jti,
        )
        return self._encode(payload.to_dict())

    def decode(self, token: str) -> AuthTokenPayload:
        parts = token.split(".")
        if len(parts) != 3:
            raise ValueError("malformed token")
        header_raw, payload_raw, sig_raw = parts
        signed = f"{header_raw}.{payload_raw}".encode("ascii")
        expected = _urlsafe_b64encode(hmac.new(self._secret, signed, hashlib.sha256).digest())
        if not hmac.compare_digest(expected, sig_raw):
            raise ValueError("invalid token signature")
        try:
            payload_obj = json.loads(_urlsafe_b64decode(payload_raw))
        except (ValueError, UnicodeDecodeError) as exc:
            raise ValueError("malformed token payload") from exc
        exp = int(payload_obj.get("exp", 0))
        if exp + self._leeway_seconds <= int(datetime.now(timezone.utc).timestamp()):
            raise ValueError("token expired")
        return AuthTokenPayload(
            sub=str(payload_obj.get("sub", "")),
            exp=exp,
            iat=int(payload_obj.get("iat", 0)),
            typ=str(payload_obj.get("typ", "")),
            jti=str(payload_obj.get("jti", "")),
        )

    def _encode(self, payload: dict[str, Any]) -> str:
        header = {"alg": "HS256", "typ": "JWT"}
        header_raw = _urlsafe_b64encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
        payload_raw = _urlsafe_b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        signed = f"{header_raw}.{payload_raw}".encode("ascii")
        sig = _urlsafe_b64encode(hmac.new(self._secret, signed, hashlib.sha256).digest())
        return f"{header_raw}.{payload_raw}.{sig}"
