from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_user_id
from app.api.errors import to_http_exception
from app.domain.errors import AssetLifecycleError
from app.domain.models import AssetAvailabilityRead, AssetCreate, AssetRead
from app.domain.state_machine import AssetStatus
from app.services.asset_service import AssetService

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[AssetService, Depends(get_asset_service)]


@router.post("", response_model=AssetRead, status_code=status.HTTP_201_CREATED)
def create_asset(payload: AssetCreate, _user_id: CurrentUserId, service: Service) -> AssetRead:
    try:
        asset = service.create_asset(payload)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return AssetRead.model_validate(asset)


@router.get("", response_model=list[AssetRead])
def list_assets(
    _user_id: CurrentUserId,
    service: Service,
    asset_status: AssetStatus | None = None,
) -> list[AssetRead]:
    return [AssetRead.model_validate(item) for item in service.list_assets(status=asset_status)]


@router.get("/{asset_id}", response_model=AssetRead)
def get_asset(asset_id: str, _user_id: CurrentUserId, service: Service) -> AssetRead:
    try:
        return AssetRead.model_validate(service.get_asset(asset_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{asset_id}/availability", response_model=AssetAvailabilityRead)
def check_asset_availability(
    asset_id: str,
    start: datetime,
    end: datetime,
    _user_id: CurrentUserId,
    service: Service,
) -> AssetAvailabilityRead:
    try:
        return service.check_availability(asset_id, start, end)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{asset_id}/delete", response_model=AssetRead)
def delete_asset(asset_id: str, user_id: CurrentUserId, service: Service) -> AssetRead:
    try:
        return AssetRead.model_validate(service.delete_asset(asset_id, actor_id=user_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
