from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from app.domain.state_machine import (
    AssetStatus,
    DamageSeverity,
    LoanRequestStatus,
    MaintenanceStatus,
)


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored value is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UserRole(StrEnum):
    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"


class MaintenanceType(StrEnum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    EMERGENCY = "emergency"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True, max_length=100)
    full_name: str = Field(max_length=200)
    role: UserRole = Field(default=UserRole.USER, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_code: str = Field(index=True, unique=True, max_length=100)
    name: str = Field(max_length=200)
    brand: str | None = Field(default=None, max_length=100)
    serial_number: str | None = Field(default=None, max_length=100)
    specification: str | None = None
    status: AssetStatus = Field(default=AssetStatus.AVAILABLE, index=True)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class LoanRequest(SQLModel, table=True):
    __tablename__ = "loan_requests"
    __table_args__ = (
        Index("ix_loan_requests_asset_status", "asset_id", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_id: str = Field(foreign_key="assets.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    purpose: str
    borrow_date: datetime = Field(index=True)
    return_date: datetime = Field(index=True)
    status: LoanRequestStatus = Field(default=LoanRequestStatus.PENDING_APPROVAL, index=True)
    approved_by: str | None = Field(default=None, foreign_key="users.id")
    approved_at: datetime | None = None
    handover_date: datetime | None = None
    actual_return_date: datetime | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class DamageReport(SQLModel, table=True):
    __tablename__ = "damage_reports"
    __table_args__ = (
        Index("ix_damage_reports_asset_resolved", "asset_id", "is_resolved"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_id: str = Field(foreign_key="assets.id", index=True)
    reported_by: str = Field(foreign_key="users.id", index=True)
    loan_request_id: str | None = Field(default=None, foreign_key="loan_requests.id", index=True)
    description: str
    photos: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    severity: DamageSeverity = Field(index=True)
    is_resolved: bool = Field(default=False, index=True)
    resolution_notes: str | None = None
    resolved_by: str | None = Field(default=None, foreign_key="users.id")
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class MaintenanceRecord(SQLModel, table=True):
    __tablename__ = "maintenance_records"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_id: str = Field(foreign_key="assets.id", index=True)
    maintenance_type: MaintenanceType = Field(index=True)
    description: str
    scheduled_date: datetime = Field(index=True)
    completed_date: datetime | None = None
    status: MaintenanceStatus = Field(default=MaintenanceStatus.SCHEDULED, index=True)
    cost: float | None = None
    performed_by: str | None = Field(default=None, max_length=200)
    notes: str | None = None
    created_by: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    username: str = PydanticField(min_length=3, max_length=100)
    full_name: str
    role: UserRole = UserRole.USER
    is_active: bool = True


class UserUpdate(BaseModel):
    full_name: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None


class UserRead(ORMReadModel):
    id: str
    username: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime


class DevTokenRequest(BaseModel):
    user_id: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AssetCreate(BaseModel):
    asset_code: str = PydanticField(min_length=1, max_length=100)
    name: str
    brand: str | None = None
    serial_number: str | None = None
    specification: str | None = None


class AssetRead(ORMReadModel):
    id: str
    asset_code: str
    name: str
    brand: str | None
    serial_number: str | None
    specification: str | None
    status: AssetStatus
    version: int
    created_at: datetime
    updated_at: datetime


class AssetAvailabilityRead(BaseModel):
    asset_id: str
    status: AssetStatus
    start: datetime
    end: datetime
    has_conflict: bool
    available: bool


class LoanRequestCreate(BaseModel):
    asset_id: str
    purpose: str
    borrow_date: datetime
    return_date: datetime
    notes: str | None = None


class LoanRequestUpdate(BaseModel):
    status: LoanRequestStatus | None = None
    handover_date: datetime | None = None
    actual_return_date: datetime | None = None
    notes: str | None = None


class LoanRequestRead(ORMReadModel):
    id: str
    asset_id: str
    user_id: str
    purpose: str
    borrow_date: datetime
    return_date: datetime
    status: LoanRequestStatus
    approved_by: str | None
    approved_at: datetime | None
    handover_date: datetime | None
    actual_return_date: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class UserLoanHistoryRead(BaseModel):
    current_loans: list[LoanRequestRead]
    loan_history: list[LoanRequestRead]
    pending_requests: list[LoanRequestRead]


class DamageReportCreate(BaseModel):
    asset_id: str
    loan_request_id: str | None = None
    description: str
    photos: list[str] = PydanticField(default_factory=list)
    severity: DamageSeverity


class DamageReportUpdate(BaseModel):
    is_resolved: bool | None = None
    resolution_notes: str | None = None


class DamageReportRead(ORMReadModel):
    id: str
    asset_id: str
    reported_by: str
    loan_request_id: str | None
    description: str
    photos: list[str]
    severity: DamageSeverity
    is_resolved: bool
    resolution_notes: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class MaintenanceRecordCreate(BaseModel):
    asset_id: str
    maintenance_type: MaintenanceType
    description: str
    scheduled_date: datetime
    cost: float | None = PydanticField(default=None, ge=0)
    performed_by: str | None = None
    notes: str | None = None


class MaintenanceRecordUpdate(BaseModel):
    completed_date: datetime | None = None
    status: MaintenanceStatus | None = None
    cost: float | None = PydanticField(default=None, ge=0)
    performed_by: str | None = None
    notes: str | None = None


class MaintenanceRecordRead(ORMReadModel):
    id: str
    asset_id: str
    maintenance_type: MaintenanceType
    description: str
    scheduled_date: datetime
    completed_date: datetime | None
    status: MaintenanceStatus
    cost: float | None
    performed_by: str | None
    notes: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
