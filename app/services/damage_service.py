from __future__ import annotations

from sqlmodel import Session, col, select

from app.domain.errors import NotFoundError, ValidationError
from app.domain.models import (
    DamageReport,
    DamageReportCreate,
    DamageReportUpdate,
    LoanRequest,
    now_utc,
)
from app.domain.state_machine import DAMAGE_SEVERITY_ASSET_STATUS, AssetStatus, DamageSeverity
from app.infra.db import get_engine
from app.services.asset_status_arbiter import AssetStatusArbiter, UnitOfWork, get_asset_or_raise
from app.services.identity_service import get_user_or_raise


class DamageService:
    def __init__(self, arbiter: AssetStatusArbiter | None = None) -> None:
        self._arbiter = arbiter or AssetStatusArbiter()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_report(self, session: Session, report_id: str) -> DamageReport:
        report = session.get(DamageReport, report_id)
        if report is None:
            raise NotFoundError("damage_report_not_found", f"damage report {report_id} not found")
        return report

    def create_damage_report(self, reporter_id: str, payload: DamageReportCreate) -> DamageReport:
        def _create(work: UnitOfWork) -> DamageReport:
            session = work.session
            asset = get_asset_or_raise(session, payload.asset_id)
            get_user_or_raise(session, reporter_id)
            if payload.loan_request_id is not None:
                loan = session.get(LoanRequest, payload.loan_request_id)
                if loan is None:
                    raise NotFoundError("loan_request_not_found", "loan request not found")
                if loan.asset_id != asset.id:
                    raise ValidationError(
                        "loan_request_asset_mismatch",
                        "loan request belongs to a different asset",
                    )

            report = DamageReport(
                asset_id=asset.id,
                reported_by=reporter_id,
                loan_request_id=payload.loan_request_id,
                description=payload.description,
                photos=list(payload.photos),
                severity=payload.severity,
                is_resolved=False,
            )
            session.add(report)
            self._arbiter.apply(
                work,
                asset,
                DAMAGE_SEVERITY_ASSET_STATUS[payload.severity],
                reason=f"damage_report:{report.id}",
            )
            session.flush()
            work.emit(
                "damage_report.created",
                {
                    "damage_report_id": report.id,
                    "asset_id": report.asset_id,
                    "severity": report.severity,
                },
            )
            return report

        return self._arbiter.run(_create, actor_id=reporter_id)

    def update_damage_report(
        self,
        report_id: str,
        payload: DamageReportUpdate,
        resolver_id: str | None = None,
    ) -> DamageReport:
        changes = payload.model_dump(exclude_unset=True)

        def _update(work: UnitOfWork) -> DamageReport:
            session = work.session
            report = self._get_report(session, report_id)
            was_resolved = report.is_resolved
            resolved = changes.get("is_resolved")
            now = now_utc()

            if resolved is True and not was_resolved:
                if resolver_id is not None:
                    get_user_or_raise(session, resolver_id)
                report.is_resolved = True
                report.resolved_by = resolver_id
                report.resolved_at = now
            elif resolved is False:
                report.is_resolved = False
                report.resolved_by = None
                report.resolved_at = None
            if "resolution_notes" in changes:
                report.resolution_notes = changes["resolution_notes"]
            report.updated_at = now
            session.add(report)
            session.flush()

            if resolved is True and not was_resolved:
                self._settle_asset_after_resolution(work, report)
            elif resolved is False and was_resolved:
                # Serializes with a concurrent resolution of another report on the asset.
                self._arbiter.lock(work, get_asset_or_raise(session, report.asset_id))
            work.emit(
                "damage_report.updated",
                {
                    "damage_report_id": report.id,
                    "asset_id": report.asset_id,
                    "is_resolved": report.is_resolved,
                },
            )
            return report

        return self._arbiter.run(_update, actor_id=resolver_id)

    def _settle_asset_after_resolution(self, work: UnitOfWork, report: DamageReport) -> None:
        session = work.session
        asset = get_asset_or_raise(session, report.asset_id)
        still_open = session.exec(
            select(DamageReport)
            .where(DamageReport.asset_id == report.asset_id)
            .where(col(DamageReport.is_resolved).is_(False))
            .where(DamageReport.id != report.id)
        ).first()
        # Only ``damaged`` is cleared here; ``under_repair`` waits for maintenance.
        if still_open is None and asset.status == AssetStatus.DAMAGED:
            self._arbiter.apply(work, asset, AssetStatus.AVAILABLE, reason=f"damage_report:{report.id}")
        else:
            self._arbiter.lock(work, asset)

    def get_damage_report(self, report_id: str) -> DamageReport:
        with self._session() as session:
            return self._get_report(session, report_id)

    def list_damage_reports(
        self,
        *,
        is_resolved: bool | None = None,
        severity: DamageSeverity | None = None,
        asset_id: str | None = None,
        reported_by: str | None = None,
    ) -> list[DamageReport]:
        with self._session() as session:
            statement = select(DamageReport)
            if is_resolved is not None:
                statement = statement.where(DamageReport.is_resolved == is_resolved)
            if severity is not None:
                statement = statement.where(DamageReport.severity == severity)
            if asset_id is not None:
                statement = statement.where(DamageReport.asset_id == asset_id)
            if reported_by is not None:
                statement = statement.where(DamageReport.reported_by == reported_by)
            statement = statement.order_by(col(DamageReport.created_at).desc())
            return list(session.exec(statement).all())
