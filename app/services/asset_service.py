from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.domain.errors import ConflictError, InvalidStateError, ValidationError
from app.domain.models import (
    Asset,
    AssetAvailabilityRead,
    AssetCreate,
    LoanRequest,
    ensure_utc,
    now_utc,
)
from app.domain.state_machine import AssetStatus, LoanRequestStatus
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.services.asset_status_arbiter import AssetStatusArbiter, UnitOfWork, get_asset_or_raise
from app.services.availability import has_conflict


class AssetService:
    def __init__(self, arbiter: AssetStatusArbiter | None = None) -> None:
        self._arbiter = arbiter or AssetStatusArbiter()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_asset(self, payload: AssetCreate) -> Asset:
        with self._session() as session:
            asset = Asset(
                asset_code=payload.asset_code,
                name=payload.name,
                brand=payload.brand,
                serial_number=payload.serial_number,
                specification=payload.specification,
                status=AssetStatus.AVAILABLE,
            )
            session.add(asset)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("asset_code_taken", "asset code already exists") from exc
            session.refresh(asset)

        event_bus.publish_dict(
            "asset.registered",
            {
                "asset_id": asset.id,
                "asset_code": asset.asset_code,
                "status": asset.status,
            },
        )
        return asset

    def list_assets(self, *, status: AssetStatus | None = None) -> list[Asset]:
        with self._session() as session:
            statement = select(Asset)
            if status is not None:
                statement = statement.where(Asset.status == status)
            return list(session.exec(statement).all())

    def get_asset(self, asset_id: str) -> Asset:
        with self._session() as session:
            return get_asset_or_raise(session, asset_id)

    def check_availability(self, asset_id: str, start: datetime, end: datetime) -> AssetAvailabilityRead:
        start = ensure_utc(start)
        end = ensure_utc(end)
        if start >= end:
            raise ValidationError("invalid_date_range", "end must be after start")
        with self._session() as session:
            asset = get_asset_or_raise(session, asset_id)
            conflict = has_conflict(session, asset.id, start, end)
        return AssetAvailabilityRead(
            asset_id=asset.id,
            status=asset.status,
            start=start,
            end=end,
            has_conflict=conflict,
            available=asset.status == AssetStatus.AVAILABLE and not conflict,
        )

    def delete_asset(self, asset_id: str, actor_id: str | None = None) -> Asset:
        def _delete(work: UnitOfWork) -> Asset:
            session = work.session
            asset = get_asset_or_raise(session, asset_id)
            if asset.status == AssetStatus.DELETED:
                return asset
            on_loan = session.exec(
                select(LoanRequest)
                .where(LoanRequest.asset_id == asset.id)
                .where(LoanRequest.status == LoanRequestStatus.APPROVED)
                .where(col(LoanRequest.actual_return_date).is_(None))
            ).first()
            if on_loan is not None:
                raise InvalidStateError("asset_on_loan", "asset has an approved loan that is not returned")
            pending = session.exec(
                select(LoanRequest)
                .where(LoanRequest.asset_id == asset.id)
                .where(LoanRequest.status == LoanRequestStatus.PENDING_APPROVAL)
            ).all()
            now = now_utc()
            for loan in pending:
                loan.status = LoanRequestStatus.REJECTED
                loan.approved_by = actor_id
                loan.approved_at = now
                loan.updated_at = now
                session.add(loan)
            self._arbiter.apply(work, asset, AssetStatus.DELETED, reason="asset.deleted")
            session.flush()
            for loan in pending:
                work.emit(
                    "loan_request.updated",
                    {
                        "loan_request_id": loan.id,
                        "asset_id": loan.asset_id,
                        "user_id": loan.user_id,
                        "status": loan.status,
                        "from_status": LoanRequestStatus.PENDING_APPROVAL,
                    },
                )
            work.emit(
                "asset.deleted",
                {"asset_id": asset.id, "rejected_loan_request_ids": [loan.id for loan in pending]},
            )
            return asset

        return self._arbiter.run(_delete, actor_id=actor_id)
