from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_user_id
from app.api.errors import to_http_exception
from app.domain.errors import AssetLifecycleError
from app.domain.models import DevTokenRequest, TokenResponse, UserCreate, UserRead, UserUpdate
from app.infra.auth import create_access_token
from app.services.identity_service import IdentityService

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[IdentityService, Depends(get_identity_service)]


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, service: Service) -> UserRead:
    try:
        user = service.create_user(payload)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.model_validate(user)


@router.post("/dev-token", response_model=TokenResponse)
def dev_token(payload: DevTokenRequest, service: Service) -> TokenResponse:
    try:
        user = service.get_active_user(payload.user_id)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return TokenResponse(access_token=create_access_token(user_id=user.id, role=user.role))


@router.get("/users", response_model=list[UserRead])
def list_users(
    _user_id: CurrentUserId,
    service: Service,
    is_active: bool | None = None,
) -> list[UserRead]:
    return [UserRead.model_validate(item) for item in service.list_users(is_active=is_active)]


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(user_id: str, _user_id: CurrentUserId, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(user_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/users/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, _user_id: CurrentUserId, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.update_user(user_id, payload))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
