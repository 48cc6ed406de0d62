"""Tests for HS512 access token issuing and verification."""

import base64
import time

import jwt
import pytest

from authgate.core.config import JWTSettings
from authgate.core.errors import (
    TokenBadSignatureError,
    TokenEmptyError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
    TokenUnsupportedError,
    ValidationAppError,
)
from authgate.services import token_codec
from authgate.services.token_codec import (
    ALGORITHM,
    TokenCodec,
    derive_signing_key,
    get_token_codec,
    init_token_codec,
)

KEY = b"k" * 64
OTHER_KEY = b"o" * 64


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(KEY, issuer="authgate-test", access_ttl_seconds=900, clock=clock)


class TestDeriveSigningKey:
    def test_decodes_base64(self) -> None:
        assert derive_signing_key(base64.b64encode(KEY).decode()) == KEY

    def test_rejects_short_key(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            derive_signing_key(base64.b64encode(b"short").decode())

        assert exc_info.value.code == "invalid_signing_key"

    def test_rejects_non_base64(self) -> None:
        with pytest.raises(ValidationAppError):
            derive_signing_key("not base64 at all!!")


class TestTokenCodec:
    def test_round_trip_returns_subject(self, codec: TokenCodec) -> None:
        assert codec.verify(codec.issue(42)) == "42"

    def test_claims(self, codec: TokenCodec, clock) -> None:
        token = codec.issue("7", ttl_seconds=60)

        header = jwt.get_unverified_header(token)
        claims = jwt.decode(token, options={"verify_signature": False})
        assert header["alg"] == ALGORITHM
        assert claims == {
            "sub": "7",
            "iss": "authgate-test",
            "iat": int(clock.now),
            "exp": int(clock.now) + 60,
        }

    def test_expires_after_ttl(self, codec: TokenCodec, clock) -> None:
        token = codec.issue(1, ttl_seconds=30)

        clock.advance(29)
        assert codec.verify(token) == "1"

        clock.advance(1)
        with pytest.raises(TokenExpiredError):
            codec.verify(token)

    def test_same_second_tokens_are_identical(self, codec: TokenCodec, clock) -> None:
        first = codec.issue(1)
        second = codec.issue(1)
        clock.advance(1)
        third = codec.issue(1)

        assert first == second
        assert third != first

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_empty_token(self, codec: TokenCodec, token) -> None:
        with pytest.raises(TokenEmptyError):
            codec.verify(token)

    def test_garbage_is_malformed(self, codec: TokenCodec) -> None:
        with pytest.raises(TokenMalformedError):
            codec.verify("not.a.jwt")

    def test_foreign_signature(self, codec: TokenCodec, clock) -> None:
        forged = TokenCodec(OTHER_KEY, issuer="authgate-test", access_ttl_seconds=900, clock=clock)

        with pytest.raises(TokenBadSignatureError):
            codec.verify(forged.issue(1))

    def test_wrong_algorithm_is_unsupported(self, codec: TokenCodec, clock) -> None:
        now = int(clock.now)
        token = jwt.encode(
            {"sub": "1", "iss": "authgate-test", "iat": now, "exp": now + 60},
            KEY,
            algorithm="HS256",
        )

        with pytest.raises(TokenUnsupportedError):
            codec.verify(token)

    def test_wrong_issuer_is_unsupported(self, codec: TokenCodec, clock) -> None:
        other = TokenCodec(KEY, issuer="someone-else", access_ttl_seconds=900, clock=clock)

        with pytest.raises(TokenUnsupportedError):
            codec.verify(other.issue(1))

    def test_missing_claim_is_unsupported(self, codec: TokenCodec, clock) -> None:
        token = jwt.encode(
            {"iss": "authgate-test", "iat": int(clock.now), "exp": int(clock.now) + 60},
            KEY,
            algorithm=ALGORITHM,
        )

        with pytest.raises(TokenUnsupportedError):
            codec.verify(token)

    def test_all_failures_are_token_errors(self) -> None:
        for error in (
            TokenEmptyError,
            TokenMalformedError,
            TokenBadSignatureError,
            TokenUnsupportedError,
            TokenExpiredError,
        ):
            assert issubclass(error, TokenError)


class TestProcessCodec:
    @pytest.fixture(autouse=True)
    def _restore_codec(self, monkeypatch):
        monkeypatch.setattr(token_codec, "_codec", None)

    def test_init_installs_codec(self) -> None:
        jwt_settings = JWTSettings(
            secret=base64.b64encode(KEY).decode(),
            issuer="init-test",
            access_token_ttl_seconds=120,
        )

        codec = init_token_codec(jwt_settings)

        assert get_token_codec() is codec
        assert codec.access_ttl_seconds == 120
        claims = jwt.decode(codec.issue(5), KEY, algorithms=[ALGORITHM], issuer="init-test")
        assert claims["exp"] - claims["iat"] == 120
        assert claims["exp"] > time.time()

    def test_init_fails_fast_on_weak_secret(self) -> None:
        with pytest.raises(ValidationAppError):
            init_token_codec(JWTSettings(secret=base64.b64encode(b"weak").decode()))
