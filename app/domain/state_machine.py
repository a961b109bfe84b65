from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from app.domain.errors import InvalidStateError


class AssetStatus(StrEnum):
    AVAILABLE = "available"
    BORROWED = "borrowed"
    UNDER_REPAIR = "under_repair"
    DAMAGED = "damaged"
    DELETED = "deleted"


class LoanRequestStatus(StrEnum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class MaintenanceStatus(StrEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DamageSeverity(StrEnum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


ACTIVE_LOAN_STATUSES: frozenset[LoanRequestStatus] = frozenset(
    {LoanRequestStatus.PENDING_APPROVAL, LoanRequestStatus.APPROVED}
)

# (current loan status, target loan status) -> asset status written on that move.
LOAN_TRANSITIONS: dict[LoanRequestStatus, dict[LoanRequestStatus, AssetStatus]] = {
    LoanRequestStatus.PENDING_APPROVAL: {
        LoanRequestStatus.APPROVED: AssetStatus.BORROWED,
        LoanRequestStatus.REJECTED: AssetStatus.AVAILABLE,
    },
    LoanRequestStatus.APPROVED: {
        LoanRequestStatus.COMPLETED: AssetStatus.AVAILABLE,
    },
    LoanRequestStatus.REJECTED: {},
    LoanRequestStatus.COMPLETED: {},
}

# Handover only moves the asset while the loan sits in one of these states.
LOAN_HANDOVER_EFFECTS: dict[LoanRequestStatus, AssetStatus] = {
    LoanRequestStatus.APPROVED: AssetStatus.BORROWED,
}

MAINTENANCE_ALLOWED_TRANSITIONS: dict[MaintenanceStatus, set[MaintenanceStatus]] = {
    MaintenanceStatus.SCHEDULED: {MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.COMPLETED},
    MaintenanceStatus.IN_PROGRESS: {MaintenanceStatus.SCHEDULED, MaintenanceStatus.COMPLETED},
    MaintenanceStatus.COMPLETED: set(),
}

DAMAGE_SEVERITY_ASSET_STATUS: dict[DamageSeverity, AssetStatus] = {
    DamageSeverity.MINOR: AssetStatus.UNDER_REPAIR,
    DamageSeverity.MAJOR: AssetStatus.DAMAGED,
    DamageSeverity.CRITICAL: AssetStatus.DAMAGED,
}


def can_loan_transition(source: LoanRequestStatus, target: LoanRequestStatus) -> bool:
    return target in LOAN_TRANSITIONS.get(source, {})


def can_maintenance_transition(source: MaintenanceStatus, target: MaintenanceStatus) -> bool:
    return target in MAINTENANCE_ALLOWED_TRANSITIONS.get(source, set())


@dataclass(frozen=True)
class LoanUpdatePlan:
    final_status: LoanRequestStatus
    transitions: tuple[tuple[LoanRequestStatus, LoanRequestStatus], ...]
    asset_status: AssetStatus | None


def plan_loan_update(
    current: LoanRequestStatus,
    *,
    requested: LoanRequestStatus | None = None,
    handover_set: bool = False,
    return_set: bool = False,
) -> LoanUpdatePlan:
    """Resolve a loan patch into the ordered moves it causes.

    The requested status is applied first, then the handover, then the
    return (which implies ``completed``). Each move must appear in
    ``LOAN_TRANSITIONS``; asking for the status the loan already has is a
    no-op. The last asset status produced along the way wins.
    """
    status = current
    asset_status: AssetStatus | None = None
    transitions: list[tuple[LoanRequestStatus, LoanRequestStatus]] = []

    def _step(target: LoanRequestStatus) -> None:
        nonlocal status, asset_status
        if target == status:
            return
        effect = LOAN_TRANSITIONS.get(status, {}).get(target)
        if effect is None:
            raise InvalidStateError(
                "illegal_loan_transition",
                f"illegal loan request transition: {status} -> {target}",
            )
        transitions.append((status, target))
        status = target
        asset_status = effect

    if requested is not None:
        _step(requested)
    if handover_set and status in LOAN_HANDOVER_EFFECTS:
        asset_status = LOAN_HANDOVER_EFFECTS[status]
    if return_set:
        _step(LoanRequestStatus.COMPLETED)

    return LoanUpdatePlan(
        final_status=status,
        transitions=tuple(transitions),
        asset_status=asset_status,
    )
