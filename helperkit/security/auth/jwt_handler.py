from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from helperkit.core.config import settings


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class InvalidTokenError(ValueError):
    """Signature, structure or issuer check failed."""


class TokenExpiredError(InvalidTokenError):
    """Signature is valid but `exp` is in the past."""

    def __init__(self, expired_at: int):
        super().__init__(f"Token expired at {expired_at}")
        self.expired_at = expired_at


@dataclass
class JWTConfig:
    algorithm: str = "HS256"
    expires_minutes: int = 60
    issuer: Optional[str] = None


@dataclass
class JWTVerification:
    result: Optional[Dict[str, Any]] = None
    token_expired_error: Optional[TokenExpiredError] = None


class JWTHandler:
    """
    Minimal JWT HS256 implementation without external dependencies.
    For production, ensure the secret is strong and rotated regularly.
    """

    def __init__(self, secret: str, config: Optional[JWTConfig] = None) -> None:
        self.secret = secret.encode()
        self.config = config or JWTConfig(
            algorithm=settings.JWT_ALGORITHM,
            expires_minutes=settings.JWT_EXPIRES_MINUTES,
            issuer=settings.JWT_ISSUER,
        )
        if self.config.algorithm != "HS256":
            raise ValueError(f"Unsupported JWT algorithm: {self.config.algorithm}")

    def create_token(
        self, subject: str, claims: Optional[Dict[str, Any]] = None
    ) -> str:
        header = {"alg": self.config.algorithm, "typ": "JWT"}
        now = int(time.time())
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + (self.config.expires_minutes * 60),
        }
        if self.config.issuer:
            payload["iss"] = self.config.issuer
        if claims:
            payload.update(claims)

        header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode())
        payload_b64 = _b64url_encode(
            json.dumps(payload, separators=(",", ":")).encode()
        )
        signing_input = f"{header_b64}.{payload_b64}".encode()
        signature = hmac.new(self.secret, signing_input, hashlib.sha256).digest()
        signature_b64 = _b64url_encode(signature)
        return f"{header_b64}.{payload_b64}.{signature_b64}"

    def verify_token(self, token: str, *, ignore_expiration: bool = False) -> Dict[str, Any]:
        try:
            header_b64, payload_b64, signature_b64 = token.split(".")
            header = json.loads(_b64url_decode(header_b64))
            if header.get("alg") != "HS256":
                raise InvalidTokenError("Unsupported alg")
            signing_input = f"{header_b64}.{payload_b64}".encode()
            expected = hmac.new(self.secret, signing_input, hashlib.sha256).digest()
            if not hmac.compare_digest(expected, _b64url_decode(signature_b64)):
                raise InvalidTokenError("Invalid signature")
            payload = json.loads(_b64url_decode(payload_b64))
        except InvalidTokenError:
            raise
        except Exception as e:  # noqa: BLE001
            raise InvalidTokenError(f"Invalid token: {e}") from e

        now = int(time.time())
        if not ignore_expiration and payload.get("exp") and now > int(payload["exp"]):
            raise TokenExpiredError(int(payload["exp"]))
        if self.config.issuer and payload.get("iss") != self.config.issuer:
            raise InvalidTokenError("Invalid issuer")
        return payload


def verify_and_decode_jwt(
    token: Optional[str], secret: Optional[str], ignore_expiration: bool = False
) -> Optional[JWTVerification]:
    """
    Verify a token and report the outcome without raising.

    Returns:
        JWTVerification(result=payload) when valid,
        JWTVerification(token_expired_error=...) when only expired,
        None for empty input or any other failure.
    """
    if not token or not secret:
        return None
    handler = JWTHandler(secret, JWTConfig())
    try:
        return JWTVerification(
            result=handler.verify_token(token, ignore_expiration=ignore_expiration)
        )
    except TokenExpiredError as e:
        return JWTVerification(token_expired_error=e)
    except InvalidTokenError:
        return None


def get_jwt_handler() -> JWTHandler:
    return JWTHandler(settings.SECRET_KEY)
