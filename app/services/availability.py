from __future__ import annotations

from datetime import datetime

from sqlmodel import Session, col, select

from app.domain.models import LoanRequest, ensure_utc
from app.domain.state_machine import ACTIVE_LOAN_STATUSES


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Inclusive-bounds overlap: ``[a, b]`` and ``[c, d]`` share a point iff ``a <= d`` and ``c <= b``."""
    return ensure_utc(start_a) <= ensure_utc(end_b) and ensure_utc(start_b) <= ensure_utc(end_a)


def find_conflicting_request(
    session: Session,
    asset_id: str,
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_request_id: str | None = None,
) -> LoanRequest | None:
    statement = (
        select(LoanRequest)
        .where(LoanRequest.asset_id == asset_id)
        .where(col(LoanRequest.status).in_(list(ACTIVE_LOAN_STATUSES)))
    )
    if exclude_request_id is not None:
        statement = statement.where(LoanRequest.id != exclude_request_id)
    for request in session.exec(statement).all():
        if intervals_overlap(request.borrow_date, request.return_date, candidate_start, candidate_end):
            return request
    return None


def has_conflict(
    session: Session,
    asset_id: str,
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_request_id: str | None = None,
) -> bool:
    return (
        find_conflicting_request(
            session,
            asset_id,
            candidate_start,
            candidate_end,
            exclude_request_id=exclude_request_id,
        )
        is not None
    )
