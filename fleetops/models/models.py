import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# =====================
# Fleet assets
# =====================

class FleetAsset(Base):
    """Fleet assets: vehicles, heavy machinery, generators. Status and readings are caches."""
    __tablename__ = "fleet_assets"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(50), default="vehicle", index=True)  # vehicle|heavy_machinery|generator|other
    fuel_type: Mapped[str] = mapped_column(String(20), default="DIESEL", nullable=False)  # DIESEL|PETROL|ELECTRIC|HYBRID|LPG|NONE
    current_odometer: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))  # Cached from fuel ledger
    current_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))  # Cached from fuel ledger
    last_odometer_update: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    current_location: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(50), default="ACTIVE", index=True)  # ACTIVE|IN_MAINTENANCE|BREAKDOWN|STANDBY|DECOMMISSIONED|SOLD
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Relationships
    fuel_records = relationship("FuelRecord", back_populates="asset", cascade="all, delete-orphan", order_by="FuelRecord.transaction_date.desc()")
    breakdowns = relationship("BreakdownLog", back_populates="asset", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_fleet_asset_type_status', 'asset_type', 'status'),
    )


# =====================
# Fuel ledger
# =====================

class FuelRecord(Base):
    """Immutable fuel transaction; the source of truth for an asset's readings"""
    __tablename__ = "fuel_records"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fleet_assets.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)  # PURCHASE|TANK_DISPENSE|CARD|OTHER
    fuel_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)  # Liters
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(20, 7), nullable=False)  # quantity * unit_price, never supplied
    odometer_reading: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))
    hours_reading: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))
    distance_since_last: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))
    hours_since_last: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))
    fuel_efficiency: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8))  # L/100 distance units or L/hour
    fuel_station: Mapped[Optional[str]] = mapped_column(String(255))
    receipt_number: Mapped[Optional[str]] = mapped_column(String(100))
    site_location: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    filled_by_id: Mapped[Optional[str]] = mapped_column(String(64))  # Caller identity from the auth layer
    approved_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    receipt_image: Mapped[Optional[str]] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    asset = relationship("FleetAsset", back_populates="fuel_records")

    __table_args__ = (
        Index('idx_fuel_record_asset_date', 'asset_id', 'transaction_date'),
    )


class FuelTank(Base):
    """Site fuel tank inventory. current_level stays within [0, capacity]."""
    __tablename__ = "fuel_tanks"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    fuel_type: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    current_level: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    reorder_level: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(30), default="ACTIVE", index=True)  # ACTIVE|INACTIVE|MAINTENANCE
    last_refill_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_refill_qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    transactions = relationship("FuelTankTransaction", back_populates="tank", cascade="all, delete-orphan", order_by="FuelTankTransaction.transaction_date.desc()")


class FuelTankTransaction(Base):
    """Balance-carrying tank ledger row"""
    __tablename__ = "fuel_tank_transactions"

    id: Mapped[uuid.UUID] = uuid_pk()
    tank_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fuel_tanks.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)  # REFILL|DISPENSE|ADJUSTMENT
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("fleet_assets.id", ondelete="SET NULL"), index=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100))
    performed_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    tank = relationship("FuelTank", back_populates="transactions")

    __table_args__ = (
        Index('idx_tank_transaction_tank_date', 'tank_id', 'transaction_date'),
    )


# =====================
# Breakdowns & maintenance
# =====================

class BreakdownLog(Base):
    """Equipment breakdown reports and their repair lifecycle"""
    __tablename__ = "breakdown_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fleet_assets.id", ondelete="CASCADE"), nullable=False, index=True)
    breakdown_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reported_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    site_location: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(30), nullable=False)  # MECHANICAL|ELECTRICAL|HYDRAULIC|ENGINE|...
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # LOW|MEDIUM|HIGH|CRITICAL
    operational_impact: Mapped[Optional[str]] = mapped_column(Text)
    estimated_downtime: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))  # Hours
    actual_downtime: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    production_loss: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    status: Mapped[str] = mapped_column(String(30), default="REPORTED", index=True)  # REPORTED|ACKNOWLEDGED|DIAGNOSING|AWAITING_PARTS|IN_REPAIR|RESOLVED|CLOSED
    root_cause: Mapped[Optional[str]] = mapped_column(Text)
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    resolved_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    repair_type: Mapped[Optional[str]] = mapped_column(String(100))
    repair_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    parts_used: Mapped[Optional[str]] = mapped_column(Text)
    reported_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    assigned_to_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    resolved_by_id: Mapped[Optional[str]] = mapped_column(String(64))
    photos: Mapped[Optional[list]] = mapped_column(JSON)  # Array of file ids
    documents: Mapped[Optional[list]] = mapped_column(JSON)  # Array of file ids
    maintenance_record_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("maintenance_records.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    asset = relationship("FleetAsset", back_populates="breakdowns")
    maintenance_record = relationship("MaintenanceRecord")

    __table_args__ = (
        Index('idx_breakdown_asset_status', 'asset_id', 'status'),
    )


class MaintenanceRecord(Base):
    """Maintenance work owned by the maintenance module; read-only here"""
    __tablename__ = "maintenance_records"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("fleet_assets.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="SCHEDULED", index=True)  # SCHEDULED|IN_PROGRESS|COMPLETED|CANCELLED
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_maintenance_asset_status', 'asset_id', 'status'),
    )
