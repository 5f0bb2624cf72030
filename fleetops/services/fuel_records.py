"""
Fuel transaction recording against fleet assets.

The fuel_records table is the source of truth for an asset's readings. The
asset's current_odometer/current_hours are a cache written in a second,
separate commit after the ledger insert; if that write is lost the cache can
be rebuilt from the ledger with rebuild_asset_readings().
"""
import math
import uuid
from typing import List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.models import FleetAsset, FuelRecord
from ..schemas.fuel import FuelRecordCreate, FuelRecordsQuery
from .derived_metrics import compute_derived_fields
from .numbers import LITRE_PLACES, PRICE_PLACES, READING_PLACES, to_decimal, to_decimal_or_none, to_utc, utcnow
from .permissions import Caller, Capability, require

logger = structlog.get_logger(__name__)

HISTORY_LIMIT = 200


def get_asset_or_404(db: Session, asset_id: uuid.UUID) -> FleetAsset:
    asset = db.query(FleetAsset).filter(FleetAsset.id == asset_id).first()
    if not asset:
        raise NotFoundError("Fleet asset not found")
    return asset


def record_fuel_transaction(db: Session, payload: FuelRecordCreate, caller: Caller) -> FuelRecord:
    require(caller, Capability.fuel_record)

    asset = get_asset_or_404(db, payload.asset_id)

    if asset.fuel_type == "NONE":
        raise ValidationError("Asset fuelType is NONE; cannot record fuel")
    fuel_type = getattr(payload.fuel_type, "value", payload.fuel_type)
    if fuel_type != asset.fuel_type:
        raise ValidationError(f"fuelType mismatch. Asset fuelType is {asset.fuel_type}")

    quantity = to_decimal(payload.quantity, "quantity", LITRE_PLACES)
    unit_price = to_decimal(payload.unit_price, "unit_price", PRICE_PLACES)
    if quantity <= 0:
        raise ValidationError("quantity must be greater than 0")
    if unit_price < 0:
        raise ValidationError("unit_price cannot be negative")
    total_cost = quantity * unit_price

    odometer_reading = to_decimal_or_none(payload.odometer_reading, "odometer_reading", READING_PLACES)
    hours_reading = to_decimal_or_none(payload.hours_reading, "hours_reading", READING_PLACES)

    if odometer_reading is not None and odometer_reading < (asset.current_odometer or 0):
        raise ValidationError("odometerReading cannot be less than current odometer")
    if hours_reading is not None and hours_reading < (asset.current_hours or 0):
        raise ValidationError("hoursReading cannot be less than current hours")

    transaction_date = to_utc(payload.transaction_date)
    derived = compute_derived_fields(
        db,
        asset_id=asset.id,
        transaction_date=transaction_date,
        quantity=quantity,
        odometer_reading=odometer_reading,
        hours_reading=hours_reading,
    )

    record = FuelRecord(
        asset_id=asset.id,
        transaction_date=transaction_date,
        transaction_type=getattr(payload.transaction_type, "value", payload.transaction_type),
        fuel_type=fuel_type,
        quantity=quantity,
        unit_price=unit_price,
        total_cost=total_cost,
        odometer_reading=odometer_reading,
        hours_reading=hours_reading,
        distance_since_last=derived.distance_since_last,
        hours_since_last=derived.hours_since_last,
        fuel_efficiency=derived.fuel_efficiency,
        fuel_station=payload.fuel_station,
        receipt_number=payload.receipt_number,
        site_location=payload.site_location,
        filled_by_id=caller.user_id,
        approved_by_id=payload.approved_by_id,
        notes=payload.notes,
        receipt_image=payload.receipt_image,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "fuel_recorded",
        record_id=str(record.id),
        asset_id=str(asset.id),
        quantity=str(quantity),
        total_cost=str(total_cost),
        previous_record_id=str(derived.previous_record_id) if derived.previous_record_id else None,
    )

    if odometer_reading is not None or hours_reading is not None:
        _update_asset_snapshot(db, asset.id, odometer_reading, hours_reading)

    return record


def _update_asset_snapshot(db: Session, asset_id: uuid.UUID, odometer_reading, hours_reading) -> None:
    """Best-effort cache write; the ledger row is already committed."""
    try:
        asset = db.query(FleetAsset).filter(FleetAsset.id == asset_id).first()
        if not asset:
            return
        if odometer_reading is not None:
            asset.current_odometer = odometer_reading
        if hours_reading is not None:
            asset.current_hours = hours_reading
        asset.last_odometer_update = utcnow()
        asset.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("asset_snapshot_update_failed", asset_id=str(asset_id), error=str(e))


def rebuild_asset_readings(db: Session, asset_id: uuid.UUID) -> dict:
    """Recompute the cached odometer/hours of an asset from its fuel ledger.

    Readings only move forward, so the cache equals the highest reading ever
    recorded. Assets without readings in the ledger keep their current values.
    """
    asset = get_asset_or_404(db, asset_id)
    max_odometer, max_hours = db.query(
        func.max(FuelRecord.odometer_reading),
        func.max(FuelRecord.hours_reading),
    ).filter(FuelRecord.asset_id == asset_id).one()

    changed = False
    if max_odometer is not None and asset.current_odometer != max_odometer:
        asset.current_odometer = max_odometer
        changed = True
    if max_hours is not None and asset.current_hours != max_hours:
        asset.current_hours = max_hours
        changed = True
    if changed:
        asset.last_odometer_update = utcnow()
        asset.updated_at = utcnow()
        db.commit()
        db.refresh(asset)
        logger.info(
            "asset_readings_rebuilt",
            asset_id=str(asset_id),
            current_odometer=str(asset.current_odometer) if asset.current_odometer is not None else None,
            current_hours=str(asset.current_hours) if asset.current_hours is not None else None,
        )

    return {
        "asset_id": asset.id,
        "current_odometer": asset.current_odometer,
        "current_hours": asset.current_hours,
        "last_odometer_update": asset.last_odometer_update,
        "changed": changed,
    }


def list_fuel_records(db: Session, query: FuelRecordsQuery) -> dict:
    q = db.query(FuelRecord)
    if query.asset_id:
        q = q.filter(FuelRecord.asset_id == query.asset_id)
    if query.site_location:
        q = q.filter(FuelRecord.site_location.ilike(f"%{query.site_location}%"))
    if query.fuel_type:
        q = q.filter(FuelRecord.fuel_type == query.fuel_type.value)
    if query.transaction_type:
        q = q.filter(FuelRecord.transaction_type == query.transaction_type.value)
    if query.date_from:
        q = q.filter(FuelRecord.transaction_date >= to_utc(query.date_from))
    if query.date_to:
        q = q.filter(FuelRecord.transaction_date <= to_utc(query.date_to))

    total = q.count()
    data = q.order_by(FuelRecord.transaction_date.desc()).offset(
        (query.page - 1) * query.page_size
    ).limit(query.page_size).all()

    return {
        "data": data,
        "page": query.page,
        "page_size": query.page_size,
        "total": total,
        "total_pages": max(1, math.ceil(total / query.page_size)),
    }


def get_fuel_history(db: Session, asset_id: uuid.UUID, limit: Optional[int] = None) -> List[FuelRecord]:
    get_asset_or_404(db, asset_id)
    return db.query(FuelRecord).filter(
        FuelRecord.asset_id == asset_id
    ).order_by(FuelRecord.transaction_date.desc()).limit(limit or HISTORY_LIMIT).all()
