from __future__ import annotations

from sqlmodel import Session, col, select

from app.domain.errors import InvalidStateError, NotFoundError
from app.domain.models import (
    MaintenanceRecord,
    MaintenanceRecordCreate,
    MaintenanceRecordUpdate,
    ensure_utc,
    now_utc,
)
from app.domain.state_machine import AssetStatus, MaintenanceStatus, can_maintenance_transition
from app.infra.db import get_engine
from app.services.asset_status_arbiter import AssetStatusArbiter, UnitOfWork, get_asset_or_raise
from app.services.identity_service import get_user_or_raise


class MaintenanceService:
    def __init__(self, arbiter: AssetStatusArbiter | None = None) -> None:
        self._arbiter = arbiter or AssetStatusArbiter()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_record(self, session: Session, record_id: str) -> MaintenanceRecord:
        record = session.get(MaintenanceRecord, record_id)
        if record is None:
            raise NotFoundError(
                "maintenance_record_not_found",
                f"maintenance record {record_id} not found",
            )
        return record

    def create_maintenance_record(
        self,
        creator_id: str,
        payload: MaintenanceRecordCreate,
    ) -> MaintenanceRecord:
        def _create(work: UnitOfWork) -> MaintenanceRecord:
            session = work.session
            asset = get_asset_or_raise(session, payload.asset_id)
            get_user_or_raise(session, creator_id)
            record = MaintenanceRecord(
                asset_id=asset.id,
                maintenance_type=payload.maintenance_type,
                description=payload.description,
                scheduled_date=ensure_utc(payload.scheduled_date),
                status=MaintenanceStatus.SCHEDULED,
                cost=payload.cost,
                performed_by=payload.performed_by,
                notes=payload.notes,
                created_by=creator_id,
            )
            session.add(record)
            self._arbiter.apply(work, asset, AssetStatus.UNDER_REPAIR, reason=f"maintenance_record:{record.id}")
            session.flush()
            work.emit(
                "maintenance_record.created",
                {
                    "maintenance_record_id": record.id,
                    "asset_id": record.asset_id,
                    "status": record.status,
                },
            )
            return record

        return self._arbiter.run(_create, actor_id=creator_id)

    def update_maintenance_record(
        self,
        record_id: str,
        payload: MaintenanceRecordUpdate,
        actor_id: str | None = None,
    ) -> MaintenanceRecord:
        changes = payload.model_dump(exclude_unset=True)

        def _update(work: UnitOfWork) -> MaintenanceRecord:
            session = work.session
            record = self._get_record(session, record_id)
            previous_status = record.status
            target = changes.get("status")
            if target is not None and target != record.status:
                if not can_maintenance_transition(record.status, target):
                    raise InvalidStateError(
                        "illegal_maintenance_transition",
                        f"illegal maintenance transition: {record.status} -> {target}",
                    )
                record.status = target
            # Re-sending ``completed`` on a completed record still releases the asset.
            completing = target == MaintenanceStatus.COMPLETED

            if "completed_date" in changes:
                completed_date = changes["completed_date"]
                record.completed_date = ensure_utc(completed_date) if completed_date is not None else None
            if completing and record.completed_date is None:
                record.completed_date = now_utc()
            if "cost" in changes:
                record.cost = changes["cost"]
            if "performed_by" in changes:
                record.performed_by = changes["performed_by"]
            if "notes" in changes:
                record.notes = changes["notes"]
            record.updated_at = now_utc()
            session.add(record)

            if completing:
                # Unconditional: open damage reports on the asset are not consulted.
                asset = get_asset_or_raise(session, record.asset_id)
                self._arbiter.apply(work, asset, AssetStatus.AVAILABLE, reason=f"maintenance_record:{record.id}")
            session.flush()
            work.emit(
                "maintenance_record.updated",
                {
                    "maintenance_record_id": record.id,
                    "asset_id": record.asset_id,
                    "from_status": previous_status,
                    "to_status": record.status,
                },
            )
            return record

        return self._arbiter.run(_update, actor_id=actor_id)

    def get_maintenance_record(self, record_id: str) -> MaintenanceRecord:
        with self._session() as session:
            return self._get_record(session, record_id)

    def list_maintenance_records(
        self,
        *,
        asset_id: str | None = None,
        status: MaintenanceStatus | None = None,
    ) -> list[MaintenanceRecord]:
        with self._session() as session:
            statement = select(MaintenanceRecord)
            if asset_id is not None:
                statement = statement.where(MaintenanceRecord.asset_id == asset_id)
            if status is not None:
                statement = statement.where(MaintenanceRecord.status == status)
            statement = statement.order_by(col(MaintenanceRecord.scheduled_date))
            return list(session.exec(statement).all())
