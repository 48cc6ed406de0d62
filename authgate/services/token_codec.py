"""Signed access token creation and verification.

Access tokens are compact JWS strings signed with HMAC-SHA-512. They carry the
subject (user id), the issuer, issued-at and expiry, and nothing else: two
tokens for the same subject issued in the same second are byte-identical.

There is no server-side revocation list. Expiry is the only way an access
token stops being valid, which is why its lifetime is kept short relative to
refresh tokens.

The signing key is derived once, at process start, by ``init_token_codec``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Any, Callable

import jwt

from authgate.core.config import JWTSettings, settings
from authgate.core.errors import (
    TokenBadSignatureError,
    TokenEmptyError,
    TokenExpiredError,
    TokenMalformedError,
    TokenUnsupportedError,
    ValidationAppError,
)
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

ALGORITHM = "HS512"
MIN_KEY_BYTES = 64
REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp"]


def derive_signing_key(secret_b64: str) -> bytes:
    """Decode the configured base64 secret into HMAC key bytes.

    Raises:
        ValidationAppError: If the secret is not valid base64 or is shorter
            than 512 bits once decoded.
    """
    try:
        key = base64.b64decode(secret_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationAppError(
            code="invalid_signing_key",
            message="JWT secret must be base64 encoded",
            details={"hint": "Generate one with: openssl rand -base64 64"},
        ) from exc

    if len(key) < MIN_KEY_BYTES:
        raise ValidationAppError(
            code="invalid_signing_key",
            message=f"JWT secret must decode to at least {MIN_KEY_BYTES} bytes for {ALGORITHM}",
            details={"hint": "Generate one with: openssl rand -base64 64"},
        )
    return key


class TokenCodec:
    """Issue and verify HS512 access tokens."""

    def __init__(
        self,
        signing_key: bytes,
        *,
        issuer: str,
        access_ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._key = signing_key
        self._issuer = issuer
        self._access_ttl = access_ttl_seconds
        self._clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return self._access_ttl

    def issue(self, subject_id: int | str, ttl_seconds: int | None = None) -> str:
        """Create a signed token for subject_id.

        Args:
            subject_id: User id placed in the ``sub`` claim.
            ttl_seconds: Lifetime; defaults to the configured access TTL.

        Returns:
            Compact JWS string.
        """
        issued_at = int(self._clock())
        ttl = self._access_ttl if ttl_seconds is None else ttl_seconds
        payload = {
            "sub": str(subject_id),
            "iss": self._issuer,
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, self._key, algorithm=ALGORITHM)

    def decode(self, token: str | None) -> dict[str, Any]:
        """Verify token and return its claims.

        Raises:
            TokenEmptyError: Token missing or blank.
            TokenMalformedError: Token cannot be parsed.
            TokenBadSignatureError: Signature does not match the key.
            TokenUnsupportedError: Wrong algorithm, issuer, or missing claims.
            TokenExpiredError: ``exp`` is not in the future.
        """
        if token is None or not token.strip():
            logger.warning("token.empty")
            raise TokenEmptyError()

        token_hash = hash_identifier(token)
        try:
            # Expiry is checked below against the codec clock
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as exc:
            logger.warning("token.bad_signature", extra={"token_hash": token_hash})
            raise TokenBadSignatureError() from exc
        except jwt.InvalidAlgorithmError as exc:
            logger.warning("token.unsupported", extra={"token_hash": token_hash, "reason": "algorithm"})
            raise TokenUnsupportedError() from exc
        except (jwt.MissingRequiredClaimError, jwt.InvalidIssuerError) as exc:
            logger.warning("token.unsupported", extra={"token_hash": token_hash, "reason": str(exc)})
            raise TokenUnsupportedError() from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("token.malformed", extra={"token_hash": token_hash, "error_msg": str(exc)})
            raise TokenMalformedError() from exc

        try:
            expires_at = int(claims["exp"])
        except (TypeError, ValueError) as exc:
            logger.warning("token.malformed", extra={"token_hash": token_hash, "reason": "exp"})
            raise TokenMalformedError() from exc

        if expires_at <= self._clock():
            logger.info("token.expired", extra={"token_hash": token_hash, "exp": expires_at})
            raise TokenExpiredError()

        return claims

    def verify(self, token: str | None) -> str:
        """Verify token and return its subject id.

        Raises:
            TokenError: One of the kinds listed on ``decode``.
        """
        return str(self.decode(token)["sub"])


_codec: TokenCodec | None = None


def init_token_codec(jwt_settings: JWTSettings | None = None) -> TokenCodec:
    """Derive the signing key and install the process-wide codec.

    Call once at startup; configuration errors surface before the first
    request instead of on it.
    """

    global _codec

    cfg = jwt_settings or settings.jwt
    _codec = TokenCodec(
        derive_signing_key(cfg.secret),
        issuer=cfg.issuer,
        access_ttl_seconds=cfg.access_token_ttl_seconds,
    )
    logger.info(
        "token_codec.initialized",
        extra={
            "issuer": cfg.issuer,
            "algorithm": ALGORITHM,
            "access_ttl_s": cfg.access_token_ttl_seconds,
        },
    )
    return _codec


def get_token_codec() -> TokenCodec:
    """Return the process-wide codec, initializing it if startup did not."""

    if _codec is None:
        return init_token_codec()
    return _codec
