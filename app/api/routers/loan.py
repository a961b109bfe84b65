from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user_id
from app.api.errors import to_http_exception
from app.domain.errors import AssetLifecycleError
from app.domain.models import (
    LoanRequestCreate,
    LoanRequestRead,
    LoanRequestUpdate,
    UserLoanHistoryRead,
)
from app.domain.state_machine import LoanRequestStatus
from app.services.loan_service import LoanService

router = APIRouter()


def get_loan_service() -> LoanService:
    return LoanService()


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[LoanService, Depends(get_loan_service)]


@router.post("", response_model=LoanRequestRead, status_code=status.HTTP_201_CREATED)
def create_loan_request(payload: LoanRequestCreate, user_id: CurrentUserId, service: Service) -> LoanRequestRead:
    try:
        loan = service.create_loan_request(user_id, payload)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return LoanRequestRead.model_validate(loan)


@router.get("", response_model=list[LoanRequestRead])
def list_loan_requests(
    _user_id: CurrentUserId,
    service: Service,
    asset_id: str | None = None,
    user_id: str | None = None,
    loan_status: Annotated[LoanRequestStatus | None, Query(alias="status")] = None,
) -> list[LoanRequestRead]:
    rows = service.list_loan_requests(asset_id=asset_id, user_id=user_id, status=loan_status)
    return [LoanRequestRead.model_validate(item) for item in rows]


@router.get("/history/me", response_model=UserLoanHistoryRead)
def get_my_loan_history(user_id: CurrentUserId, service: Service) -> UserLoanHistoryRead:
    try:
        return service.get_user_loan_history(user_id)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{loan_id}", response_model=LoanRequestRead)
def get_loan_request(loan_id: str, _user_id: CurrentUserId, service: Service) -> LoanRequestRead:
    try:
        return LoanRequestRead.model_validate(service.get_loan_request(loan_id))
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{loan_id}", response_model=LoanRequestRead)
def update_loan_request(
    loan_id: str,
    payload: LoanRequestUpdate,
    user_id: CurrentUserId,
    service: Service,
) -> LoanRequestRead:
    try:
        loan = service.update_loan_request(loan_id, payload, approver_id=user_id)
    except AssetLifecycleError as exc:
        raise to_http_exception(exc) from exc
    return LoanRequestRead.model_validate(loan)
