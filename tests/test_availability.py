from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.domain.models import Asset, LoanRequest, User
from app.domain.state_machine import LoanRequestStatus
from app.services.availability import find_conflicting_request, has_conflict, intervals_overlap

BASE = datetime(2030, 1, 1, tzinfo=UTC)


def _day(offset: int) -> datetime:
    return BASE + timedelta(days=offset)


@pytest.fixture()
def availability_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    db_path = tmp_path / "availability_test.db"
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
    yield test_engine
    test_engine.dispose()


def _seed(engine: Engine, *loans: tuple[int, int, LoanRequestStatus]) -> tuple[str, list[str]]:
    with Session(engine) as session:
        user = User(username="borrower", full_name="Borrower")
        asset = Asset(asset_code="AV-1", name="camera")
        session.add(user)
        session.add(asset)
        session.flush()
        ids: list[str] = []
        for start, end, status in loans:
            loan = LoanRequest(
                asset_id=asset.id,
                user_id=user.id,
                purpose="shoot",
                borrow_date=_day(start),
                return_date=_day(end),
                status=status,
            )
            session.add(loan)
            ids.append(loan.id)
        session.commit()
        return asset.id, ids


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (3, 7),  # starts inside existing
        (0, 3),  # ends inside existing
        (1, 6),  # contains existing
        (3, 4),  # inside existing
        (5, 8),  # touches the end bound
        (0, 2),  # touches the start bound
    ],
)
def test_intervals_overlap_inclusive(start: int, end: int) -> None:
    assert intervals_overlap(_day(2), _day(5), _day(start), _day(end))


def test_intervals_disjoint() -> None:
    assert not intervals_overlap(_day(2), _day(5), _day(6), _day(8))
    assert not intervals_overlap(_day(2), _day(5), _day(0), _day(1))


def test_intervals_overlap_mixes_naive_and_aware() -> None:
    naive_start = _day(3).replace(tzinfo=None)
    assert intervals_overlap(_day(2), _day(5), naive_start, _day(9))


def test_has_conflict_ignores_closed_requests(availability_engine: Engine) -> None:
    asset_id, _ = _seed(
        availability_engine,
        (1, 5, LoanRequestStatus.REJECTED),
        (6, 9, LoanRequestStatus.COMPLETED),
    )
    with Session(availability_engine) as session:
        assert not has_conflict(session, asset_id, _day(2), _day(8))


def test_has_conflict_sees_pending_and_approved(availability_engine: Engine) -> None:
    asset_id, ids = _seed(
        availability_engine,
        (1, 5, LoanRequestStatus.PENDING_APPROVAL),
        (10, 12, LoanRequestStatus.APPROVED),
    )
    with Session(availability_engine) as session:
        assert has_conflict(session, asset_id, _day(4), _day(6))
        assert has_conflict(session, asset_id, _day(11), _day(15))
        assert not has_conflict(session, asset_id, _day(6), _day(9))
        conflict = find_conflicting_request(session, asset_id, _day(0), _day(2))
        assert conflict is not None
        assert conflict.id == ids[0]


def test_has_conflict_can_exclude_a_request(availability_engine: Engine) -> None:
    asset_id, ids = _seed(availability_engine, (1, 5, LoanRequestStatus.PENDING_APPROVAL))
    with Session(availability_engine) as session:
        assert not has_conflict(session, asset_id, _day(1), _day(5), exclude_request_id=ids[0])


def test_has_conflict_is_scoped_to_asset(availability_engine: Engine) -> None:
    _seed(availability_engine, (1, 5, LoanRequestStatus.APPROVED))
    with Session(availability_engine) as session:
        assert not has_conflict(session, "other-asset", _day(1), _day(5))
