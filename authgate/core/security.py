"""Bearer access token authentication for protected routes.

Usage:
    @router.get("/me")
    def me(user_id: Annotated[int, Depends(get_current_user_id)]): ...
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authgate.core.errors import TokenEmptyError, TokenMalformedError
from authgate.services.token_codec import TokenCodec, get_token_codec

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through our own 401 error body
bearer_scheme = HTTPBearer(auto_error=False, description="Access token from /v1/auth/login")


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> int:
    """FastAPI dependency returning the user id of a valid access token.

    Raises:
        TokenError: Missing, malformed, badly signed, unsupported or expired
            token (mapped to 401).
    """

    if credentials is None:
        logger.info("auth.bearer_missing")
        raise TokenEmptyError()

    subject = codec.verify(credentials.credentials)
    try:
        return int(subject)
    except ValueError as exc:
        logger.warning("auth.bearer_bad_subject")
        raise TokenMalformedError() from exc
