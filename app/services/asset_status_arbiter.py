from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar
from uuid import uuid4

from sqlalchemy import update
from sqlmodel import Session, col

from app.domain.errors import InvalidStateError, NotFoundError, StaleAssetVersionError
from app.domain.models import Asset, EventEnvelope, now_utc
from app.domain.state_machine import AssetStatus
from app.infra.db import get_engine
from app.infra.events import event_bus

logger = logging.getLogger(__name__)

ASSET_STATUS_MAX_ATTEMPTS = int(os.getenv("ASSET_STATUS_MAX_ATTEMPTS", "5"))

T = TypeVar("T")


@dataclass(frozen=True)
class AssetStatusChange:
    asset_id: str
    from_status: AssetStatus
    to_status: AssetStatus
    version: int
    reason: str


@dataclass
class UnitOfWork:
    """State for one attempt of an arbitrated operation.

    Events are buffered here and only published once the attempt commits.
    """

    session: Session
    actor_id: str | None = None
    status_changes: list[AssetStatusChange] = field(default_factory=list)
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))


def get_asset_or_raise(session: Session, asset_id: str) -> Asset:
    asset = session.get(Asset, asset_id)
    if asset is None:
        raise NotFoundError("asset_not_found", "asset not found")
    return asset


class AssetStatusArbiter:
    """Single writer for ``Asset.status``.

    Every write is a compare-and-set on ``Asset.version``. When another unit
    of work got there first, the whole operation is rolled back and run again
    against fresh reads, so the decision logic always sees current state.
    """

    def __init__(self, max_attempts: int | None = None) -> None:
        self.max_attempts = max_attempts or ASSET_STATUS_MAX_ATTEMPTS

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def run(self, operation: Callable[[UnitOfWork], T], *, actor_id: str | None = None) -> T:
        for attempt in range(1, self.max_attempts + 1):
            with self._session() as session:
                work = UnitOfWork(session=session, actor_id=actor_id)
                try:
                    result = operation(work)
                    session.commit()
                except StaleAssetVersionError as exc:
                    session.rollback()
                    logger.warning(
                        "asset %s changed concurrently (attempt %d/%d), retrying",
                        exc.asset_id,
                        attempt,
                        self.max_attempts,
                    )
                    continue
            self._publish(work)
            return result
        raise InvalidStateError(
            "stale_asset_version",
            "asset was modified concurrently, retry limit reached",
        )

    def apply(
        self,
        work: UnitOfWork,
        asset: Asset,
        target: AssetStatus,
        *,
        reason: str,
    ) -> AssetStatusChange | None:
        if asset.status == AssetStatus.DELETED and target != AssetStatus.DELETED:
            raise InvalidStateError("asset_deleted", "asset is deleted")
        previous = asset.status
        self._compare_and_set(work.session, asset, target)
        if previous == target:
            return None
        change = AssetStatusChange(
            asset_id=asset.id,
            from_status=previous,
            to_status=target,
            version=asset.version,
            reason=reason,
        )
        work.status_changes.append(change)
        logger.info(
            "asset %s status %s -> %s (%s)",
            asset.id,
            previous,
            target,
            reason,
        )
        return change

    def lock(self, work: UnitOfWork, asset: Asset) -> None:
        """Claim the asset for this unit of work without changing its status."""
        self._compare_and_set(work.session, asset, asset.status)

    def _compare_and_set(self, session: Session, asset: Asset, target: AssetStatus) -> None:
        expected_version = asset.version
        statement = (
            update(Asset)
            .where(col(Asset.id) == asset.id)
            .where(col(Asset.version) == expected_version)
            .values(status=target, version=expected_version + 1, updated_at=now_utc())
        )
        result = session.connection().execute(statement)
        if result.rowcount != 1:
            raise StaleAssetVersionError(asset.id, expected_version)
        session.refresh(asset)

    def _publish(self, work: UnitOfWork) -> None:
        # One correlation id ties the domain events to the status changes they caused.
        correlation_id = str(uuid4())
        batch = [
            EventEnvelope(
                event_type=event_type,
                actor_id=work.actor_id,
                correlation_id=correlation_id,
                payload=payload,
            )
            for event_type, payload in work.events
        ]
        batch.extend(
            EventEnvelope(
                event_type="asset.status_changed",
                actor_id=work.actor_id,
                correlation_id=correlation_id,
                payload={
                    "asset_id": change.asset_id,
                    "from_status": change.from_status,
                    "to_status": change.to_status,
                    "version": change.version,
                    "reason": change.reason,
                },
            )
            for change in work.status_changes
        )
        event_bus.publish_many(batch)
