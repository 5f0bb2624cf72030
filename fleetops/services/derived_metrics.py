"""
Derived fuel metrics computed from consecutive readings of the same asset.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..models.models import FuelRecord

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class DerivedMetrics:
    previous_record_id: Optional[uuid.UUID] = None
    distance_since_last: Optional[Decimal] = None
    hours_since_last: Optional[Decimal] = None
    fuel_efficiency: Optional[Decimal] = None


def _delta(current: Optional[Decimal], previous: Optional[Decimal]) -> Optional[Decimal]:
    if current is None or previous is None:
        return None
    delta = Decimal(current) - Decimal(previous)
    # Out-of-order (backfilled) readings produce a negative delta: not computable
    if delta < 0:
        return None
    return delta


def derive_metrics(
    quantity: Decimal,
    odometer_reading: Optional[Decimal],
    hours_reading: Optional[Decimal],
    previous: Optional[FuelRecord],
) -> DerivedMetrics:
    if previous is None:
        return DerivedMetrics()

    distance = _delta(odometer_reading, previous.odometer_reading)
    hours = _delta(hours_reading, previous.hours_reading)

    efficiency = None
    if distance is not None and distance > 0:
        efficiency = quantity / distance * HUNDRED
    elif hours is not None and hours > 0:
        efficiency = quantity / hours

    return DerivedMetrics(
        previous_record_id=previous.id,
        distance_since_last=distance,
        hours_since_last=hours,
        fuel_efficiency=efficiency,
    )


def compute_derived_fields(
    db: Session,
    asset_id: uuid.UUID,
    transaction_date: datetime,
    quantity: Decimal,
    odometer_reading: Optional[Decimal] = None,
    hours_reading: Optional[Decimal] = None,
) -> DerivedMetrics:
    """Compare a new reading with the asset's latest earlier fuel record.

    Runs on the given session so callers inside an open transaction (tank
    dispense) see their own uncommitted rows.
    """
    previous = db.query(FuelRecord).filter(
        FuelRecord.asset_id == asset_id,
        FuelRecord.transaction_date < transaction_date,
    ).order_by(FuelRecord.transaction_date.desc()).first()
    return derive_metrics(quantity, odometer_reading, hours_reading, previous)
