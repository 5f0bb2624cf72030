import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_caller, require_capability
from ..services.permissions import Caller, Capability
from ..services import fuel_analytics, fuel_records, fuel_tanks
from ..schemas.fuel import (
    AssetReadingsResponse,
    FuelAnomaliesQuery,
    FuelAnomaliesReport,
    FuelConsumptionQuery,
    FuelConsumptionReport,
    FuelEfficiencyQuery,
    FuelEfficiencyReport,
    FuelRecordCreate,
    FuelRecordPage,
    FuelRecordResponse,
    FuelRecordsQuery,
    FuelReportGroupBy,
    FuelTankCreate,
    FuelTankResponse,
    FuelTankTransactionResponse,
    FuelTankUpdate,
    FuelTransactionType,
    FuelType,
    TankDispenseCreate,
    TankRefillCreate,
)

router = APIRouter(prefix="/fleet", tags=["fuel"])


# ---------- FUEL RECORDS ----------
@router.post("/fuel", response_model=FuelRecordResponse)
def record_fuel(
    payload: FuelRecordCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Record a fuel transaction against an asset"""
    return fuel_records.record_fuel_transaction(db, payload, caller)


@router.get("/fuel", response_model=FuelRecordPage)
def list_fuel(
    asset_id: Optional[uuid.UUID] = Query(None),
    site_location: Optional[str] = Query(None),
    fuel_type: Optional[FuelType] = Query(None),
    transaction_type: Optional[FuelTransactionType] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_read)),
):
    query = FuelRecordsQuery(
        asset_id=asset_id,
        site_location=site_location,
        fuel_type=fuel_type,
        transaction_type=transaction_type,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return fuel_records.list_fuel_records(db, query)


@router.get("/assets/{asset_id}/fuel", response_model=List[FuelRecordResponse])
def asset_fuel_history(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_read)),
):
    """Most recent fuel records of an asset"""
    return fuel_records.get_fuel_history(db, asset_id)


@router.post("/assets/{asset_id}/rebuild-readings", response_model=AssetReadingsResponse)
def rebuild_readings(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_manage)),
):
    """Recompute the cached odometer/hours of an asset from its fuel ledger"""
    return fuel_records.rebuild_asset_readings(db, asset_id)


# ---------- ANALYTICS ----------
@router.get("/fuel/efficiency", response_model=FuelEfficiencyReport)
def fuel_efficiency(
    asset_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_analytics)),
):
    query = FuelEfficiencyQuery(asset_id=asset_id, date_from=date_from, date_to=date_to, days=days)
    return fuel_analytics.get_fuel_efficiency(db, query)


@router.get("/fuel/consumption", response_model=FuelConsumptionReport)
def fuel_consumption(
    asset_id: Optional[uuid.UUID] = Query(None),
    asset_ids: Optional[str] = Query(None),
    site_location: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    group_by: FuelReportGroupBy = Query(FuelReportGroupBy.asset),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_analytics)),
):
    query = FuelConsumptionQuery(
        asset_id=asset_id,
        asset_ids=asset_ids,
        site_location=site_location,
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
    )
    return fuel_analytics.get_fuel_consumption_report(db, query)


@router.get("/fuel/anomalies", response_model=FuelAnomaliesReport)
def fuel_anomalies(
    asset_id: Optional[uuid.UUID] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=3650),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_analytics)),
):
    return fuel_analytics.detect_anomalies(db, FuelAnomaliesQuery(asset_id=asset_id, days=days))


# ---------- TANKS ----------
@router.get("/fuel/tanks", response_model=List[FuelTankResponse])
def list_tanks(
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_read)),
):
    return fuel_tanks.get_tank_levels(db)


@router.get("/fuel/tanks/low", response_model=List[FuelTankResponse])
def low_tanks(
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_read)),
):
    """Active tanks at or below their reorder level"""
    return fuel_tanks.get_low_tank_alerts(db)


@router.post("/fuel/tanks", response_model=FuelTankResponse)
def create_tank(
    payload: FuelTankCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return fuel_tanks.create_tank(db, payload, caller)


@router.put("/fuel/tanks/{tank_id}", response_model=FuelTankResponse)
def update_tank(
    tank_id: uuid.UUID,
    payload: FuelTankUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return fuel_tanks.update_tank(db, tank_id, payload, caller)


@router.post("/fuel/tanks/{tank_id}/refill", response_model=FuelTankTransactionResponse)
def refill_tank(
    tank_id: uuid.UUID,
    payload: TankRefillCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return fuel_tanks.record_tank_refill(db, tank_id, payload, caller)


@router.post("/fuel/tanks/{tank_id}/dispense", response_model=FuelTankTransactionResponse)
def dispense_from_tank(
    tank_id: uuid.UUID,
    payload: TankDispenseCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Dispense from a tank; with an asset this also records a TANK_DISPENSE fuel record"""
    return fuel_tanks.record_tank_dispense(db, tank_id, payload, caller)


@router.get("/fuel/tanks/{tank_id}/transactions", response_model=List[FuelTankTransactionResponse])
def tank_transactions(
    tank_id: uuid.UUID,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fuel_read)),
):
    return fuel_tanks.get_tank_transactions(db, tank_id, limit)
