from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from app.domain.errors import InvalidStateError, NotFoundError
from app.domain.models import (
    Asset,
    AssetCreate,
    DamageReportCreate,
    MaintenanceRecordCreate,
    MaintenanceRecordUpdate,
    MaintenanceType,
    User,
    UserCreate,
    UserRole,
    ensure_utc,
    now_utc,
)
from app.domain.state_machine import AssetStatus, DamageSeverity, MaintenanceStatus
from app.infra import db, events
from app.services.asset_service import AssetService
from app.services.damage_service import DamageService
from app.services.identity_service import IdentityService
from app.services.maintenance_service import MaintenanceService


@pytest.fixture()
def maintenance_engine(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[Engine, None, None]:
    db_path = tmp_path / "maintenance_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    yield test_engine
    test_engine.dispose()


def _create_user(username: str) -> User:
    return IdentityService().create_user(UserCreate(username=username, full_name=username.title(), role=UserRole.STAFF))


def _create_asset(code: str) -> Asset:
    return AssetService().create_asset(AssetCreate(asset_code=code, name=f"projector {code}"))


def _schedule(asset_id: str, **extra: object) -> MaintenanceRecordCreate:
    return MaintenanceRecordCreate(
        asset_id=asset_id,
        maintenance_type=MaintenanceType.CORRECTIVE,
        description="replace gimbal motor",
        scheduled_date=now_utc() + timedelta(days=1),
        **extra,  # type: ignore[arg-type]
    )


def _asset_status(asset_id: str) -> AssetStatus:
    return AssetService().get_asset(asset_id).status


def test_schedule_then_complete(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-1")
    service = MaintenanceService()

    record = service.create_maintenance_record(technician.id, _schedule(asset.id, cost=120.5))
    assert record.status == MaintenanceStatus.SCHEDULED
    assert record.created_by == technician.id
    assert _asset_status(asset.id) == AssetStatus.UNDER_REPAIR

    in_progress = service.update_maintenance_record(
        record.id,
        MaintenanceRecordUpdate(status=MaintenanceStatus.IN_PROGRESS, performed_by="bench 2"),
        actor_id=technician.id,
    )
    assert in_progress.status == MaintenanceStatus.IN_PROGRESS
    assert in_progress.completed_date is None
    assert _asset_status(asset.id) == AssetStatus.UNDER_REPAIR

    done = service.update_maintenance_record(
        record.id,
        MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED, notes="calibrated"),
        actor_id=technician.id,
    )
    assert done.status == MaintenanceStatus.COMPLETED
    assert done.completed_date is not None
    assert done.performed_by == "bench 2"
    assert done.notes == "calibrated"
    assert done.cost == 120.5
    assert _asset_status(asset.id) == AssetStatus.AVAILABLE


def test_explicit_completed_date_is_kept(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-2")
    service = MaintenanceService()

    record = service.create_maintenance_record(technician.id, _schedule(asset.id))
    finished_at = now_utc() - timedelta(hours=3)
    done = service.update_maintenance_record(
        record.id,
        MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED, completed_date=finished_at),
    )

    assert done.completed_date is not None
    assert ensure_utc(done.completed_date) == finished_at


def test_completion_ignores_open_damage_reports(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-3")

    report = DamageService().create_damage_report(
        technician.id,
        DamageReportCreate(asset_id=asset.id, description="prop cracked", severity=DamageSeverity.MAJOR),
    )
    service = MaintenanceService()
    record = service.create_maintenance_record(technician.id, _schedule(asset.id))
    service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED))

    assert _asset_status(asset.id) == AssetStatus.AVAILABLE
    assert DamageService().get_damage_report(report.id).is_resolved is False


def test_completed_record_is_final(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-4")
    service = MaintenanceService()

    record = service.create_maintenance_record(technician.id, _schedule(asset.id))
    service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED))

    for target in (MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS):
        with pytest.raises(InvalidStateError) as exc_info:
            service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=target))
        assert exc_info.value.code == "illegal_maintenance_transition"

    # Re-sending the current status is accepted and writes the asset again.
    version_before = AssetService().get_asset(asset.id).version
    again = service.update_maintenance_record(
        record.id,
        MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED, cost=80.0),
    )
    assert again.cost == 80.0
    assert again.status == MaintenanceStatus.COMPLETED
    assert AssetService().get_asset(asset.id).version == version_before + 1
    assert _asset_status(asset.id) == AssetStatus.AVAILABLE


def test_recompleting_record_clears_later_minor_damage(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-9")
    service = MaintenanceService()

    record = service.create_maintenance_record(technician.id, _schedule(asset.id))
    first = service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED))
    DamageService().create_damage_report(
        technician.id,
        DamageReportCreate(asset_id=asset.id, description="loose screw", severity=DamageSeverity.MINOR),
    )
    assert _asset_status(asset.id) == AssetStatus.UNDER_REPAIR

    again = service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED))

    assert _asset_status(asset.id) == AssetStatus.AVAILABLE
    assert first.completed_date is not None
    assert again.completed_date is not None
    assert ensure_utc(again.completed_date) == ensure_utc(first.completed_date)


def test_in_progress_can_go_back_to_scheduled(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-5")
    service = MaintenanceService()

    record = service.create_maintenance_record(technician.id, _schedule(asset.id))
    service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.IN_PROGRESS))
    back = service.update_maintenance_record(record.id, MaintenanceRecordUpdate(status=MaintenanceStatus.SCHEDULED))

    assert back.status == MaintenanceStatus.SCHEDULED
    assert _asset_status(asset.id) == AssetStatus.UNDER_REPAIR


def test_create_and_update_errors(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    asset = _create_asset("DRN-6")
    service = MaintenanceService()

    with pytest.raises(NotFoundError) as missing_asset:
        service.create_maintenance_record(technician.id, _schedule("missing"))
    assert missing_asset.value.code == "asset_not_found"

    with pytest.raises(NotFoundError) as missing_user:
        service.create_maintenance_record("missing", _schedule(asset.id))
    assert missing_user.value.code == "user_not_found"

    with pytest.raises(NotFoundError) as missing_record:
        service.update_maintenance_record("missing", MaintenanceRecordUpdate(notes="x"))
    assert missing_record.value.code == "maintenance_record_not_found"

    assert _asset_status(asset.id) == AssetStatus.AVAILABLE


def test_list_filters(maintenance_engine: Engine) -> None:
    technician = _create_user("technician")
    first_asset = _create_asset("DRN-7")
    second_asset = _create_asset("DRN-8")
    service = MaintenanceService()

    first = service.create_maintenance_record(technician.id, _schedule(first_asset.id))
    second = service.create_maintenance_record(technician.id, _schedule(second_asset.id))
    service.update_maintenance_record(second.id, MaintenanceRecordUpdate(status=MaintenanceStatus.COMPLETED))

    assert [item.id for item in service.list_maintenance_records(asset_id=first_asset.id)] == [first.id]
    assert [item.id for item in service.list_maintenance_records(status=MaintenanceStatus.COMPLETED)] == [second.id]
    assert len(service.list_maintenance_records()) == 2
    assert service.get_maintenance_record(first.id).maintenance_type == MaintenanceType.CORRECTIVE
