from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_user_id
from app.api.errors import to_http_exception
from app.domain.errors import AssetLifecycleError
from app.domain.models import DamageReportCreate, DamageReportRead, DamageReportUpdate
from app.domain.state_machine import DamageSeverity
from app.services.damage_service import DamageService

router = APIRouter()


def get_damage_service() -> DamageService:
    return DamageService()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[DamageService, Depends(get_damage_service)]


@router.post("", response_model=DamageReportRead, status_code=status.HTTP_201_CREATED)
def create_damage_report(payload: DamageReportCreate, user_id: CurrentUserId, service: Service) -> DamageReportRead:
    try:
        report = service.create_damage_report(user_id, payload)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return DamageReportRead.model_validate(report)


@router.get("", response_model=list[DamageReportRead])
def list_damage_reports(
    _user_id: CurrentUserId,
    service: Service,
    is_resolved: bool | None = None,
    severity: DamageSeverity | None = None,
    asset_id: str | None = None,
    reported_by: str | None = None,
) -> list[DamageReportRead]:
    rows = service.list_damage_reports(
        is_resolved=is_resolved,
        severity=severity,
        asset_id=asset_id,
        reported_by=reported_by,
    )
    return [DamageReportRead.model_validate(item) for item in rows]


@router.get("/{report_id}", response_model=DamageReportRead)
def get_damage_report(report_id: str, _user_id: CurrentUserId, service: Service) -> DamageReportRead:
    try:
        return DamageReportRead.model_validate(service.get_damage_report(report_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{report_id}", response_model=DamageReportRead)
def update_damage_report(
    report_id: str,
    payload: DamageReportUpdate,
    user_id: CurrentUserId,
    service: Service,
) -> DamageReportRead:
    try:
        report = service.update_damage_report(report_id, payload, resolver_id=user_id)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return DamageReportRead.model_validate(report)
