from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from authgate.api.dependencies import get_user_view_service
from authgate.core.errors import AuthenticationAppError
from authgate.core.security import get_current_user_id
from authgate.schemas.auth import UserView
from authgate.services.user_view import UserViewService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserView)
def read_current_user(
    user_id: Annotated[int, Depends(get_current_user_id)],
    views: Annotated[UserViewService, Depends(get_user_view_service)],
) -> UserView:
    """Profile, roles and permissions of the access token's subject."""
    view = views.get_user_view(user_id)
    if view is None:
        # Valid signature but the user is gone
        raise AuthenticationAppError(code="user_not_found", message="User no longer exists")
    return view
