import uuid
from typing import List, Optional
from sqlalchemy import or_

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_caller, require_capability
from ..errors import ValidationError
from ..models.models import FleetAsset
from ..services import asset_status, breakdowns
from ..services.fuel_records import get_asset_or_404
from ..services.numbers import READING_PLACES, to_decimal_or_none, utcnow
from ..services.permissions import Caller, Capability
from ..schemas.fleet import (
    AssetStatusResponse,
    BreakdownAssign,
    BreakdownCategory,
    BreakdownCreate,
    BreakdownPage,
    BreakdownQuery,
    BreakdownResolve,
    BreakdownResponse,
    BreakdownStats,
    BreakdownStatus,
    BreakdownUpdate,
    FleetAssetCreate,
    FleetAssetResponse,
    FleetAssetStatus,
    FleetAssetType,
    FleetAssetUpdate,
    Severity,
)

router = APIRouter(prefix="/fleet", tags=["fleet"])


# ---------- FLEET ASSETS ----------
@router.get("/assets", response_model=List[FleetAssetResponse])
def list_fleet_assets(
    asset_type: Optional[FleetAssetType] = Query(None),
    status: Optional[FleetAssetStatus] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    """List fleet assets with filters"""
    query = db.query(FleetAsset)

    if asset_type:
        query = query.filter(FleetAsset.asset_type == asset_type.value)
    if status:
        query = query.filter(FleetAsset.status == status.value)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                FleetAsset.name.ilike(search_term),
                FleetAsset.asset_code.ilike(search_term),
                FleetAsset.current_location.ilike(search_term),
            )
        )

    return query.order_by(FleetAsset.created_at.desc()).limit(500).all()


@router.get("/assets/{asset_id}", response_model=FleetAssetResponse)
def get_fleet_asset(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    return get_asset_or_404(db, asset_id)


@router.post("/assets", response_model=FleetAssetResponse)
def create_fleet_asset(
    asset: FleetAssetCreate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_manage)),
):
    """Create a new fleet asset"""
    if db.query(FleetAsset).filter(FleetAsset.asset_code == asset.asset_code).first():
        raise ValidationError("assetCode already exists")

    data = asset.model_dump()
    data["asset_type"] = asset.asset_type.value
    data["fuel_type"] = asset.fuel_type.value
    data["current_odometer"] = to_decimal_or_none(asset.current_odometer, "current_odometer", READING_PLACES)
    data["current_hours"] = to_decimal_or_none(asset.current_hours, "current_hours", READING_PLACES)

    new_asset = FleetAsset(**data, status=FleetAssetStatus.active.value)
    db.add(new_asset)
    db.commit()
    db.refresh(new_asset)
    return new_asset


@router.put("/assets/{asset_id}", response_model=FleetAssetResponse)
def update_fleet_asset(
    asset_id: uuid.UUID,
    asset_update: FleetAssetUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_manage)),
):
    """Update a fleet asset. Readings are owned by the fuel ledger and cannot be set here."""
    asset = get_asset_or_404(db, asset_id)

    update_data = asset_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(asset, key, value)
    asset.updated_at = utcnow()

    db.commit()
    db.refresh(asset)
    return asset


@router.delete("/assets/{asset_id}")
def delete_fleet_asset(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_manage)),
):
    """Delete a fleet asset (soft delete by setting status to decommissioned)"""
    asset = get_asset_or_404(db, asset_id)

    asset.status = FleetAssetStatus.decommissioned.value
    asset.updated_at = utcnow()
    db.commit()
    return {"message": "Fleet asset deleted successfully"}


@router.post("/assets/{asset_id}/refresh-status", response_model=AssetStatusResponse)
def refresh_status(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_manage)),
):
    """Recompute an asset's status from its open breakdowns and maintenance"""
    get_asset_or_404(db, asset_id)
    status = asset_status.refresh_asset_status(db, asset_id)
    return {"asset_id": asset_id, "status": status}


@router.get("/assets/{asset_id}/breakdowns", response_model=List[BreakdownResponse])
def asset_breakdowns(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    return breakdowns.list_asset_breakdowns(db, asset_id)


# ---------- BREAKDOWNS ----------
@router.post("/breakdowns", response_model=BreakdownResponse)
def report_breakdown(
    payload: BreakdownCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Report a breakdown; the asset moves to BREAKDOWN"""
    return breakdowns.create_breakdown(db, payload, caller)


@router.get("/breakdowns", response_model=BreakdownPage)
def list_breakdowns(
    asset_id: Optional[uuid.UUID] = Query(None),
    status: Optional[BreakdownStatus] = Query(None),
    severity: Optional[Severity] = Query(None),
    category: Optional[BreakdownCategory] = Query(None),
    site_location: Optional[str] = Query(None),
    active_only: bool = Query(False),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    query = BreakdownQuery(
        asset_id=asset_id,
        status=status,
        severity=severity,
        category=category,
        site_location=site_location,
        active_only=active_only,
        search=search,
        page=page,
        page_size=page_size,
    )
    return breakdowns.list_breakdowns(db, query)


@router.get("/breakdowns/active", response_model=List[BreakdownResponse])
def active_breakdowns(
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    return breakdowns.active_breakdowns(db)


@router.get("/breakdowns/stats", response_model=BreakdownStats)
def breakdown_stats(
    days: int = Query(30, ge=1, le=3650),
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    return breakdowns.breakdown_stats(db, days)


@router.get("/breakdowns/{breakdown_id}", response_model=BreakdownResponse)
def get_breakdown(
    breakdown_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_capability(Capability.fleet_read)),
):
    return breakdowns.get_breakdown(db, breakdown_id)


@router.put("/breakdowns/{breakdown_id}", response_model=BreakdownResponse)
def update_breakdown(
    breakdown_id: uuid.UUID,
    payload: BreakdownUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return breakdowns.update_breakdown(db, breakdown_id, payload, caller)


@router.put("/breakdowns/{breakdown_id}/assign", response_model=BreakdownResponse)
def assign_breakdown(
    breakdown_id: uuid.UUID,
    payload: BreakdownAssign,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return breakdowns.assign_breakdown(db, breakdown_id, payload, caller)


@router.put("/breakdowns/{breakdown_id}/resolve", response_model=BreakdownResponse)
def resolve_breakdown(
    breakdown_id: uuid.UUID,
    payload: BreakdownResolve,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Resolve a breakdown; the asset returns to service once nothing else is open"""
    return breakdowns.resolve_breakdown(db, breakdown_id, payload, caller)
