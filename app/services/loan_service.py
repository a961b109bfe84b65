from __future__ import annotations

from datetime import datetime

from sqlmodel import Session, col, select

from app.domain.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.domain.models import (
    LoanRequest,
    LoanRequestCreate,
    LoanRequestRead,
    LoanRequestUpdate,
    UserLoanHistoryRead,
    ensure_utc,
    now_utc,
)
from app.domain.state_machine import AssetStatus, LoanRequestStatus, plan_loan_update
from app.infra.db import get_engine
from app.services.asset_status_arbiter import AssetStatusArbiter, UnitOfWork, get_asset_or_raise
from app.services.availability import has_conflict
from app.services.identity_service import get_user_or_raise


def _optional_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _loan_payload(loan: LoanRequest) -> dict[str, str | None]:
    return {
        "loan_request_id": loan.id,
        "asset_id": loan.asset_id,
        "user_id": loan.user_id,
        "status": loan.status,
    }


class LoanService:
    def __init__(self, arbiter: AssetStatusArbiter | None = None) -> None:
        self._arbiter = arbiter or AssetStatusArbiter()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_loan(self, session: Session, loan_id: str) -> LoanRequest:
        loan = session.get(LoanRequest, loan_id)
        if loan is None:
            raise NotFoundError("loan_request_not_found", f"loan request {loan_id} not found")
        return loan

    def create_loan_request(self, user_id: str, payload: LoanRequestCreate) -> LoanRequest:
        borrow_date = ensure_utc(payload.borrow_date)
        return_date = ensure_utc(payload.return_date)

        def _create(work: UnitOfWork) -> LoanRequest:
            session = work.session
            user = get_user_or_raise(session, user_id)
            if not user.is_active:
                raise InvalidStateError("user_inactive", "user account is inactive")
            asset = get_asset_or_raise(session, payload.asset_id)
            if asset.status != AssetStatus.AVAILABLE:
                raise InvalidStateError("asset_unavailable", "asset is not available for borrowing")
            if borrow_date >= return_date:
                raise ValidationError("invalid_date_range", "return date must be after borrow date")
            if borrow_date < now_utc():
                raise ValidationError("borrow_date_in_past", "borrow date cannot be in the past")
            if has_conflict(session, asset.id, borrow_date, return_date):
                raise ConflictError(
                    "schedule_conflict",
                    "asset is already requested or booked for the specified date range",
                )

            loan = LoanRequest(
                asset_id=asset.id,
                user_id=user.id,
                purpose=payload.purpose,
                borrow_date=borrow_date,
                return_date=return_date,
                status=LoanRequestStatus.PENDING_APPROVAL,
                notes=payload.notes,
            )
            session.add(loan)
            # Bumping the asset version makes check-then-insert atomic per asset.
            self._arbiter.lock(work, asset)
            session.flush()
            work.emit("loan_request.created", _loan_payload(loan))
            return loan

        return self._arbiter.run(_create, actor_id=user_id)

    def update_loan_request(
        self,
        loan_id: str,
        payload: LoanRequestUpdate,
        approver_id: str | None = None,
    ) -> LoanRequest:
        changes = payload.model_dump(exclude_unset=True)

        def _update(work: UnitOfWork) -> LoanRequest:
            session = work.session
            loan = self._get_loan(session, loan_id)
            if approver_id is not None:
                get_user_or_raise(session, approver_id)
            plan = plan_loan_update(
                loan.status,
                requested=changes.get("status"),
                handover_set=changes.get("handover_date") is not None,
                return_set=changes.get("actual_return_date") is not None,
            )
            previous_status = loan.status
            now = now_utc()
            for _, target in plan.transitions:
                if target == LoanRequestStatus.APPROVED:
                    loan.approved_by = approver_id
                    loan.approved_at = now
                elif target == LoanRequestStatus.REJECTED and approver_id is not None:
                    loan.approved_by = approver_id
                    loan.approved_at = now
            loan.status = plan.final_status
            if "handover_date" in changes:
                loan.handover_date = _optional_utc(changes["handover_date"])
            if "actual_return_date" in changes:
                loan.actual_return_date = _optional_utc(changes["actual_return_date"])
            if "notes" in changes:
                loan.notes = changes["notes"]
            loan.updated_at = now
            session.add(loan)

            asset = get_asset_or_raise(session, loan.asset_id)
            if plan.asset_status is not None:
                self._arbiter.apply(work, asset, plan.asset_status, reason=f"loan_request:{loan.id}")
            elif plan.transitions:
                self._arbiter.lock(work, asset)
            session.flush()
            work.emit(
                "loan_request.updated",
                {**_loan_payload(loan), "from_status": previous_status},
            )
            return loan

        return self._arbiter.run(_update, actor_id=approver_id)

    def get_loan_request(self, loan_id: str) -> LoanRequest:
        with self._session() as session:
            return self._get_loan(session, loan_id)

    def list_loan_requests(
        self,
        *,
        asset_id: str | None = None,
        user_id: str | None = None,
        status: LoanRequestStatus | None = None,
    ) -> list[LoanRequest]:
        with self._session() as session:
            statement = select(LoanRequest)
            if asset_id is not None:
                statement = statement.where(LoanRequest.asset_id == asset_id)
            if user_id is not None:
                statement = statement.where(LoanRequest.user_id == user_id)
            if status is not None:
                statement = statement.where(LoanRequest.status == status)
            statement = statement.order_by(col(LoanRequest.borrow_date))
            return list(session.exec(statement).all())

    def get_user_loan_history(self, user_id: str) -> UserLoanHistoryRead:
        with self._session() as session:
            get_user_or_raise(session, user_id)
        loans = self.list_loan_requests(user_id=user_id)
        current = [
            loan
            for loan in loans
            if loan.status == LoanRequestStatus.APPROVED
            and loan.handover_date is not None
            and loan.actual_return_date is None
        ]
        history = [
            loan
            for loan in loans
            if loan.status == LoanRequestStatus.COMPLETED or loan.actual_return_date is not None
        ]
        pending = [loan for loan in loans if loan.status == LoanRequestStatus.PENDING_APPROVAL]
        return UserLoanHistoryRead(
            current_loans=[LoanRequestRead.model_validate(item) for item in current],
            loan_history=[LoanRequestRead.model_validate(item) for item in history],
            pending_requests=[LoanRequestRead.model_validate(item) for item in pending],
        )
