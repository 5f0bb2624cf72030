"""
Fuel tank inventory and its balance-carrying transaction ledger.

Refills and dispenses run as one unit of work on the caller's session: the
tank row is read with SELECT ... FOR UPDATE, the ledger row and the tank
update (and, for dispenses to an asset, the cascading fuel record) are
flushed together and committed once. Any failure rolls the whole unit back.
"""
import uuid
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..models.models import FleetAsset, FuelRecord, FuelTank, FuelTankTransaction
from ..schemas.fuel import (
    FuelTankCreate,
    FuelTankStatus,
    FuelTankTransactionType,
    FuelTankUpdate,
    FuelTransactionType,
    TankDispenseCreate,
    TankRefillCreate,
)
from .derived_metrics import compute_derived_fields
from .numbers import LITRE_PLACES, PRICE_PLACES, to_decimal, to_decimal_or_none, utcnow
from .permissions import Caller, Capability, require

logger = structlog.get_logger(__name__)


def _locked_tank(db: Session, tank_id: uuid.UUID) -> FuelTank:
    tank = db.query(FuelTank).filter(FuelTank.id == tank_id).with_for_update().first()
    if not tank:
        raise NotFoundError("Fuel tank not found")
    return tank


def _positive_quantity(value: str) -> Decimal:
    qty = to_decimal(value, "quantity", LITRE_PLACES)
    if qty <= 0:
        raise ValidationError("quantity must be greater than 0")
    return qty


def _check_levels(capacity: Decimal, current_level: Decimal, reorder_level: Decimal) -> None:
    if capacity <= 0:
        raise ValidationError("capacity must be greater than 0")
    if current_level < 0 or reorder_level < 0:
        raise ValidationError("Tank levels cannot be negative")
    if current_level > capacity:
        raise ValidationError("currentLevel cannot exceed capacity")


def create_tank(db: Session, payload: FuelTankCreate, caller: Caller) -> FuelTank:
    require(caller, Capability.fuel_manage)

    capacity = to_decimal(payload.capacity, "capacity", LITRE_PLACES)
    current_level = to_decimal(payload.current_level, "current_level", LITRE_PLACES)
    reorder_level = to_decimal(payload.reorder_level, "reorder_level", LITRE_PLACES)
    _check_levels(capacity, current_level, reorder_level)

    tank = FuelTank(
        name=payload.name,
        location=payload.location,
        fuel_type=payload.fuel_type.value,
        capacity=capacity,
        current_level=current_level,
        reorder_level=reorder_level,
        status=(payload.status or "").strip() or FuelTankStatus.active.value,
    )
    db.add(tank)
    db.commit()
    db.refresh(tank)
    logger.info("tank_created", tank_id=str(tank.id), capacity=str(capacity), current_level=str(current_level))
    return tank


def update_tank(db: Session, tank_id: uuid.UUID, payload: FuelTankUpdate, caller: Caller) -> FuelTank:
    require(caller, Capability.fuel_manage)

    try:
        tank = _locked_tank(db, tank_id)
        data = payload.model_dump(exclude_unset=True)

        for key in ("capacity", "current_level", "reorder_level"):
            if key in data:
                if data[key] is None:
                    raise ValidationError(f"{key} cannot be null")
                data[key] = to_decimal(data[key], key, LITRE_PLACES)
        if data.get("fuel_type") is not None:
            data["fuel_type"] = data["fuel_type"].value
        if "status" in data:
            data["status"] = (data["status"] or "").strip() or tank.status

        # Validate against the effective values, not only the patched ones
        _check_levels(
            data.get("capacity", tank.capacity),
            data.get("current_level", tank.current_level),
            data.get("reorder_level", tank.reorder_level),
        )

        for key, value in data.items():
            if value is not None:
                setattr(tank, key, value)
        tank.updated_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(tank)
    return tank


def record_tank_refill(db: Session, tank_id: uuid.UUID, payload: TankRefillCreate, caller: Caller) -> FuelTankTransaction:
    require(caller, Capability.fuel_manage)
    qty = _positive_quantity(payload.quantity)

    try:
        tank = _locked_tank(db, tank_id)

        before = Decimal(tank.current_level)
        after = before + qty
        if after > Decimal(tank.capacity):
            raise ValidationError("Refill would exceed tank capacity")

        now = utcnow()
        row = FuelTankTransaction(
            tank_id=tank.id,
            transaction_type=FuelTankTransactionType.refill.value,
            quantity=qty,
            balance_before=before,
            balance_after=after,
            asset_id=None,
            reference=payload.reference,
            performed_by_id=caller.user_id,
            transaction_date=now,
            notes=payload.notes,
        )
        db.add(row)

        tank.current_level = after
        tank.last_refill_date = now
        tank.last_refill_qty = qty
        tank.updated_at = now

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    logger.info("tank_refilled", tank_id=str(tank_id), quantity=str(qty), balance_before=str(before), balance_after=str(after))
    return row


def record_tank_dispense(db: Session, tank_id: uuid.UUID, payload: TankDispenseCreate, caller: Caller) -> FuelTankTransaction:
    require(caller, Capability.fuel_manage)
    qty = _positive_quantity(payload.quantity)

    try:
        tank = _locked_tank(db, tank_id)

        asset = None
        if payload.asset_id:
            asset = db.query(FleetAsset).filter(FleetAsset.id == payload.asset_id).first()
            if not asset:
                raise NotFoundError("Fleet asset not found")
            if asset.fuel_type != tank.fuel_type:
                raise ValidationError(
                    f"Tank fuelType ({tank.fuel_type}) does not match asset fuelType ({asset.fuel_type})"
                )

        before = Decimal(tank.current_level)
        after = before - qty
        if after < 0:
            raise ValidationError("Insufficient tank level")

        now = utcnow()
        row = FuelTankTransaction(
            tank_id=tank.id,
            transaction_type=FuelTankTransactionType.dispense.value,
            quantity=qty,
            balance_before=before,
            balance_after=after,
            asset_id=asset.id if asset else None,
            reference=payload.reference,
            performed_by_id=caller.user_id,
            transaction_date=now,
            notes=payload.notes,
        )
        db.add(row)

        tank.current_level = after
        tank.updated_at = now

        if asset is not None:
            _cascade_fuel_record(db, tank, asset, qty, payload, caller, now)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    logger.info(
        "tank_dispensed",
        tank_id=str(tank_id),
        asset_id=str(payload.asset_id) if payload.asset_id else None,
        quantity=str(qty),
        balance_before=str(before),
        balance_after=str(after),
    )
    return row


def _cascade_fuel_record(db: Session, tank: FuelTank, asset: FleetAsset, qty: Decimal, payload: TankDispenseCreate, caller: Caller, now) -> FuelRecord:
    """Ledger entry for fuel dispensed from a tank into an asset.

    No readings are captured on this path, so the asset's cached
    odometer/hours are left untouched.
    """
    unit_price = to_decimal_or_none(payload.unit_price, "unit_price", PRICE_PLACES)
    if unit_price is None:
        unit_price = Decimal("0")
    if unit_price < 0:
        raise ValidationError("unit_price cannot be negative")

    derived = compute_derived_fields(
        db,
        asset_id=asset.id,
        transaction_date=now,
        quantity=qty,
    )

    record = FuelRecord(
        asset_id=asset.id,
        transaction_date=now,
        transaction_type=FuelTransactionType.tank_dispense.value,
        fuel_type=tank.fuel_type,
        quantity=qty,
        unit_price=unit_price,
        total_cost=qty * unit_price,
        odometer_reading=None,
        hours_reading=None,
        distance_since_last=derived.distance_since_last,
        hours_since_last=derived.hours_since_last,
        fuel_efficiency=derived.fuel_efficiency,
        fuel_station=tank.name,
        receipt_number=payload.reference,
        site_location=tank.location,
        filled_by_id=caller.user_id,
        approved_by_id=None,
        notes=payload.notes,
        receipt_image=None,
    )
    db.add(record)
    db.flush()
    return record


def get_tank_or_404(db: Session, tank_id: uuid.UUID) -> FuelTank:
    tank = db.query(FuelTank).filter(FuelTank.id == tank_id).first()
    if not tank:
        raise NotFoundError("Fuel tank not found")
    return tank


def get_tank_levels(db: Session) -> List[FuelTank]:
    return db.query(FuelTank).order_by(FuelTank.location.asc(), FuelTank.name.asc()).all()


def get_low_tank_alerts(db: Session) -> List[FuelTank]:
    return db.query(FuelTank).filter(
        FuelTank.status == FuelTankStatus.active.value,
        FuelTank.current_level <= FuelTank.reorder_level,
    ).order_by(FuelTank.location.asc(), FuelTank.name.asc()).limit(settings.low_tank_alerts_max).all()


def get_tank_transactions(db: Session, tank_id: uuid.UUID, limit: Optional[int] = None) -> List[FuelTankTransaction]:
    get_tank_or_404(db, tank_id)
    take = min(settings.tank_transactions_max, limit or settings.tank_transactions_default)
    return db.query(FuelTankTransaction).filter(
        FuelTankTransaction.tank_id == tank_id
    ).order_by(FuelTankTransaction.transaction_date.desc()).limit(take).all()
