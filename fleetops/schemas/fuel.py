import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field


# Enums
class FuelType(str, Enum):
    diesel = "DIESEL"
    petrol = "PETROL"
    electric = "ELECTRIC"
    hybrid = "HYBRID"
    lpg = "LPG"
    none = "NONE"


class FuelTransactionType(str, Enum):
    purchase = "PURCHASE"
    tank_dispense = "TANK_DISPENSE"
    card = "CARD"
    other = "OTHER"


class FuelTankTransactionType(str, Enum):
    refill = "REFILL"
    dispense = "DISPENSE"
    adjustment = "ADJUSTMENT"


class FuelTankStatus(str, Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"
    maintenance = "MAINTENANCE"


class FuelReportGroupBy(str, Enum):
    asset = "ASSET"
    site = "SITE"
    fuel_type = "FUEL_TYPE"


class AnomalySeverity(str, Enum):
    high_consumption = "HIGH_CONSUMPTION"
    low_consumption = "LOW_CONSUMPTION"


# Fuel Record Schemas
# Numeric inputs are decimal strings; they are parsed by the services.
class FuelRecordCreate(BaseModel):
    asset_id: uuid.UUID
    transaction_date: datetime
    transaction_type: FuelTransactionType = FuelTransactionType.purchase
    fuel_type: FuelType
    quantity: str
    unit_price: str
    odometer_reading: Optional[str] = None
    hours_reading: Optional[str] = None
    fuel_station: Optional[str] = None
    receipt_number: Optional[str] = None
    site_location: Optional[str] = None
    approved_by_id: Optional[str] = None
    notes: Optional[str] = None
    receipt_image: Optional[str] = None


class FuelRecordResponse(BaseModel):
    id: uuid.UUID
    asset_id: uuid.UUID
    transaction_date: datetime
    transaction_type: str
    fuel_type: str
    quantity: Decimal
    unit_price: Decimal
    total_cost: Decimal
    odometer_reading: Optional[Decimal] = None
    hours_reading: Optional[Decimal] = None
    distance_since_last: Optional[Decimal] = None
    hours_since_last: Optional[Decimal] = None
    fuel_efficiency: Optional[Decimal] = None
    fuel_station: Optional[str] = None
    receipt_number: Optional[str] = None
    site_location: Optional[str] = None
    filled_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    notes: Optional[str] = None
    receipt_image: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FuelRecordPage(BaseModel):
    data: List[FuelRecordResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class FuelRecordsQuery(BaseModel):
    asset_id: Optional[uuid.UUID] = None
    site_location: Optional[str] = None
    fuel_type: Optional[FuelType] = None
    transaction_type: Optional[FuelTransactionType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=200)


class AssetReadingsResponse(BaseModel):
    asset_id: uuid.UUID
    current_odometer: Optional[Decimal] = None
    current_hours: Optional[Decimal] = None
    last_odometer_update: Optional[datetime] = None
    changed: bool


# Tank Schemas
class FuelTankCreate(BaseModel):
    name: str
    location: str
    fuel_type: FuelType
    capacity: str
    current_level: str = "0"
    reorder_level: str = "0"
    status: Optional[str] = None


class FuelTankUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    fuel_type: Optional[FuelType] = None
    capacity: Optional[str] = None
    current_level: Optional[str] = None
    reorder_level: Optional[str] = None
    status: Optional[str] = None


class FuelTankResponse(BaseModel):
    id: uuid.UUID
    name: str
    location: str
    fuel_type: str
    capacity: Decimal
    current_level: Decimal
    reorder_level: Decimal
    status: str
    last_refill_date: Optional[datetime] = None
    last_refill_qty: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TankRefillCreate(BaseModel):
    quantity: str
    reference: Optional[str] = None
    notes: Optional[str] = None


class TankDispenseCreate(BaseModel):
    quantity: str
    asset_id: Optional[uuid.UUID] = None
    unit_price: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class FuelTankTransactionResponse(BaseModel):
    id: uuid.UUID
    tank_id: uuid.UUID
    transaction_type: str
    quantity: Decimal
    balance_before: Decimal
    balance_after: Decimal
    asset_id: Optional[uuid.UUID] = None
    reference: Optional[str] = None
    performed_by_id: Optional[str] = None
    transaction_date: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# Analytics Schemas
class FuelEfficiencyQuery(BaseModel):
    asset_id: Optional[uuid.UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    days: Optional[int] = Field(default=None, ge=1, le=3650)


class FuelTotals(BaseModel):
    liters: str
    cost: str


class FuelAverages(BaseModel):
    l_per_100: Optional[str] = None
    l_per_hour: Optional[str] = None


class FuelEfficiencyReport(BaseModel):
    records: int
    totals: FuelTotals
    averages: FuelAverages


class FuelConsumptionQuery(BaseModel):
    asset_id: Optional[uuid.UUID] = None
    asset_ids: Optional[str] = None  # Comma separated
    site_location: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    group_by: FuelReportGroupBy = FuelReportGroupBy.asset


class FuelConsumptionGroup(BaseModel):
    key: str
    count: int
    liters: str
    cost: str


class FuelConsumptionTotal(BaseModel):
    liters: str
    cost: str
    records: int


class FuelConsumptionReport(BaseModel):
    total: FuelConsumptionTotal
    group_by: FuelReportGroupBy
    groups: List[FuelConsumptionGroup]


class FuelAnomaliesQuery(BaseModel):
    asset_id: Optional[uuid.UUID] = None
    days: Optional[int] = Field(default=None, ge=1, le=3650)


class FuelAnomaly(BaseModel):
    id: uuid.UUID
    asset_id: uuid.UUID
    transaction_date: datetime
    fuel_efficiency: str
    avg_fuel_efficiency: str
    severity: AnomalySeverity
    quantity: Optional[str] = None
    distance_since_last: Optional[str] = None
    hours_since_last: Optional[str] = None


class FuelAnomaliesReport(BaseModel):
    days: int
    records: int
    anomalies: List[FuelAnomaly]
