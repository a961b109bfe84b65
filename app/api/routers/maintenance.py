from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user_id
from app.api.errors import to_http_exception
from app.domain.errors import AssetLifecycleError
from app.domain.models import (
    MaintenanceRecordCreate,
    MaintenanceRecordRead,
    MaintenanceRecordUpdate,
)
from app.domain.state_machine import MaintenanceStatus
from app.services.maintenance_service import MaintenanceService

router = APIRouter()


def get_maintenance_service() -> MaintenanceService:
    return MaintenanceService()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[MaintenanceService, Depends(get_maintenance_service)]


@router.post("", response_model=MaintenanceRecordRead, status_code=status.HTTP_201_CREATED)
def create_maintenance_record(
    payload: MaintenanceRecordCreate,
    user_id: CurrentUserId,
    service: Service,
) -> MaintenanceRecordRead:
    try:
        record = service.create_maintenance_record(user_id, payload)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return MaintenanceRecordRead.model_validate(record)


@router.get("", response_model=list[MaintenanceRecordRead])
def list_maintenance_records(
    _user_id: CurrentUserId,
    service: Service,
    asset_id: str | None = None,
    record_status: Annotated[MaintenanceStatus | None, Query(alias="status")] = None,
) -> list[MaintenanceRecordRead]:
    rows = service.list_maintenance_records(asset_id=asset_id, status=record_status)
    return [MaintenanceRecordRead.model_validate(item) for item in rows]


@router.get("/{record_id}", response_model=MaintenanceRecordRead)
def get_maintenance_record(record_id: str, _user_id: CurrentUserId, service: Service) -> MaintenanceRecordRead:
    try:
        return MaintenanceRecordRead.model_validate(service.get_maintenance_record(record_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{record_id}", response_model=MaintenanceRecordRead)
def update_maintenance_record(
    record_id: str,
    payload: MaintenanceRecordUpdate,
    user_id: CurrentUserId,
    service: Service,
) -> MaintenanceRecordRead:
    try:
        record = service.update_maintenance_record(record_id, payload, actor_id=user_id)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return MaintenanceRecordRead.model_validate(record)
