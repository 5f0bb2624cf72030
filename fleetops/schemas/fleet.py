import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict
from enum import Enum

from pydantic import BaseModel, Field

from .fuel import FuelType


# Enums
class FleetAssetType(str, Enum):
    vehicle = "vehicle"
    heavy_machinery = "heavy_machinery"
    generator = "generator"
    other = "other"


class FleetAssetStatus(str, Enum):
    active = "ACTIVE"
    in_maintenance = "IN_MAINTENANCE"
    breakdown = "BREAKDOWN"
    standby = "STANDBY"
    decommissioned = "DECOMMISSIONED"
    sold = "SOLD"


class BreakdownCategory(str, Enum):
    mechanical = "MECHANICAL"
    electrical = "ELECTRICAL"
    hydraulic = "HYDRAULIC"
    engine = "ENGINE"
    transmission = "TRANSMISSION"
    tires_tracks = "TIRES_TRACKS"
    structural = "STRUCTURAL"
    operator_error = "OPERATOR_ERROR"
    external_damage = "EXTERNAL_DAMAGE"
    other = "OTHER"


class Severity(str, Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"
    critical = "CRITICAL"


class BreakdownStatus(str, Enum):
    reported = "REPORTED"
    acknowledged = "ACKNOWLEDGED"
    diagnosing = "DIAGNOSING"
    awaiting_parts = "AWAITING_PARTS"
    in_repair = "IN_REPAIR"
    resolved = "RESOLVED"
    closed = "CLOSED"


class MaintenanceStatus(str, Enum):
    scheduled = "SCHEDULED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


# Fleet Asset Schemas
class FleetAssetBase(BaseModel):
    asset_code: str
    name: str
    asset_type: FleetAssetType = FleetAssetType.vehicle
    fuel_type: FuelType = FuelType.diesel
    current_location: Optional[str] = None
    notes: Optional[str] = None


class FleetAssetCreate(FleetAssetBase):
    current_odometer: Optional[str] = None
    current_hours: Optional[str] = None


class FleetAssetUpdate(BaseModel):
    name: Optional[str] = None
    asset_type: Optional[FleetAssetType] = None
    fuel_type: Optional[FuelType] = None
    current_location: Optional[str] = None
    status: Optional[FleetAssetStatus] = None
    notes: Optional[str] = None


class FleetAssetResponse(FleetAssetBase):
    id: uuid.UUID
    status: str
    current_odometer: Optional[Decimal] = None
    current_hours: Optional[Decimal] = None
    last_odometer_update: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssetStatusResponse(BaseModel):
    asset_id: uuid.UUID
    status: str


# Breakdown Schemas
class BreakdownCreate(BaseModel):
    asset_id: uuid.UUID
    breakdown_date: datetime
    location: Optional[str] = None
    site_location: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: BreakdownCategory
    severity: Severity
    operational_impact: Optional[str] = None
    estimated_downtime: Optional[str] = None
    production_loss: Optional[str] = None
    maintenance_record_id: Optional[uuid.UUID] = None
    photos: Optional[List[str]] = None
    documents: Optional[List[str]] = None


class BreakdownUpdate(BaseModel):
    breakdown_date: Optional[datetime] = None
    location: Optional[str] = None
    site_location: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[BreakdownCategory] = None
    severity: Optional[Severity] = None
    operational_impact: Optional[str] = None
    estimated_downtime: Optional[str] = None
    actual_downtime: Optional[str] = None
    production_loss: Optional[str] = None
    status: Optional[BreakdownStatus] = None
    root_cause: Optional[str] = None
    resolution: Optional[str] = None
    resolved_date: Optional[datetime] = None
    repair_type: Optional[str] = None
    repair_cost: Optional[str] = None
    parts_used: Optional[str] = None
    assigned_to_id: Optional[str] = None
    photos: Optional[List[str]] = None
    documents: Optional[List[str]] = None


class BreakdownAssign(BaseModel):
    assigned_to_id: str
    status: Optional[BreakdownStatus] = None


class BreakdownResolve(BaseModel):
    root_cause: Optional[str] = None
    resolution: Optional[str] = None
    resolved_date: Optional[datetime] = None
    actual_downtime: Optional[str] = None
    repair_type: Optional[str] = None
    repair_cost: Optional[str] = None
    parts_used: Optional[str] = None
    status: Optional[BreakdownStatus] = None


class BreakdownResponse(BaseModel):
    id: uuid.UUID
    asset_id: uuid.UUID
    breakdown_date: datetime
    reported_date: datetime
    location: Optional[str] = None
    site_location: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: str
    severity: str
    operational_impact: Optional[str] = None
    estimated_downtime: Optional[Decimal] = None
    actual_downtime: Optional[Decimal] = None
    production_loss: Optional[Decimal] = None
    status: str
    root_cause: Optional[str] = None
    resolution: Optional[str] = None
    resolved_date: Optional[datetime] = None
    repair_type: Optional[str] = None
    repair_cost: Optional[Decimal] = None
    parts_used: Optional[str] = None
    reported_by_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    resolved_by_id: Optional[str] = None
    photos: Optional[List[str]] = None
    documents: Optional[List[str]] = None
    maintenance_record_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BreakdownPage(BaseModel):
    data: List[BreakdownResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class BreakdownQuery(BaseModel):
    asset_id: Optional[uuid.UUID] = None
    status: Optional[BreakdownStatus] = None
    severity: Optional[Severity] = None
    category: Optional[BreakdownCategory] = None
    site_location: Optional[str] = None
    active_only: bool = False
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=200)


class BreakdownStats(BaseModel):
    days: int
    total: int
    by_status: Dict[str, int]
    by_severity: Dict[str, int]
    by_category: Dict[str, int]
    total_repair_cost: str
    total_estimated_downtime: str
    total_actual_downtime: str
