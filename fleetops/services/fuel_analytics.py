"""
Read-only aggregations over the fuel ledger.

All reports sum Decimals, never floats, and read a bounded number of rows.
"""
import uuid
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ValidationError
from ..models.models import FuelRecord
from ..schemas.fuel import (
    FuelAnomaliesQuery,
    FuelConsumptionQuery,
    FuelEfficiencyQuery,
    FuelReportGroupBy,
)
from .numbers import as_decimal, decimal_str, to_decimal, to_utc, utcnow

ZERO = Decimal("0")


def _mean(total: Decimal, count: int):
    if not count:
        return None
    return total / Decimal(count)


def get_fuel_efficiency(db: Session, query: FuelEfficiencyQuery) -> dict:
    q = db.query(FuelRecord)
    if query.asset_id:
        q = q.filter(FuelRecord.asset_id == query.asset_id)

    if query.date_from or query.date_to:
        if query.date_from:
            q = q.filter(FuelRecord.transaction_date >= to_utc(query.date_from))
        if query.date_to:
            q = q.filter(FuelRecord.transaction_date <= to_utc(query.date_to))
    else:
        days = query.days or settings.fuel_efficiency_days
        q = q.filter(FuelRecord.transaction_date >= utcnow() - timedelta(days=days))

    rows = q.order_by(FuelRecord.transaction_date.desc()).limit(settings.fuel_analytics_row_cap).all()

    total_liters = ZERO
    total_cost = ZERO
    # Distance-derived and time-derived efficiencies are different units; never mix them
    sum_per_100, count_per_100 = ZERO, 0
    sum_per_hour, count_per_hour = ZERO, 0

    for r in rows:
        total_liters += as_decimal(r.quantity)
        total_cost += as_decimal(r.total_cost)

        if r.fuel_efficiency is None:
            continue
        eff = as_decimal(r.fuel_efficiency)
        if r.distance_since_last is not None and r.distance_since_last > 0:
            sum_per_100 += eff
            count_per_100 += 1
        elif r.hours_since_last is not None and r.hours_since_last > 0:
            sum_per_hour += eff
            count_per_hour += 1

    return {
        "records": len(rows),
        "totals": {"liters": str(total_liters), "cost": str(total_cost)},
        "averages": {
            "l_per_100": decimal_str(_mean(sum_per_100, count_per_100)),
            "l_per_hour": decimal_str(_mean(sum_per_hour, count_per_hour)),
        },
    }


def _group_key(record: FuelRecord, group_by: FuelReportGroupBy) -> str:
    if group_by == FuelReportGroupBy.site:
        value = record.site_location
    elif group_by == FuelReportGroupBy.fuel_type:
        value = record.fuel_type
    else:
        value = record.asset_id
    return str(value) if value else "Unknown"


def get_fuel_consumption_report(db: Session, query: FuelConsumptionQuery) -> dict:
    q = db.query(FuelRecord)
    if query.asset_id:
        q = q.filter(FuelRecord.asset_id == query.asset_id)
    if query.asset_ids:
        ids = [s.strip() for s in str(query.asset_ids).split(",") if s.strip()]
        if ids:
            q = q.filter(FuelRecord.asset_id.in_(_parse_uuids(ids)))
    if query.site_location:
        q = q.filter(FuelRecord.site_location.ilike(f"%{query.site_location}%"))
    if query.date_from:
        q = q.filter(FuelRecord.transaction_date >= to_utc(query.date_from))
    if query.date_to:
        q = q.filter(FuelRecord.transaction_date <= to_utc(query.date_to))

    rows = q.limit(settings.fuel_report_row_cap).all()

    group_by = query.group_by or FuelReportGroupBy.asset
    total_liters = ZERO
    total_cost = ZERO
    grouped: Dict[str, dict] = {}

    for r in rows:
        liters = as_decimal(r.quantity)
        cost = as_decimal(r.total_cost)
        total_liters += liters
        total_cost += cost

        key = _group_key(r, group_by)
        bucket = grouped.setdefault(key, {"liters": ZERO, "cost": ZERO, "count": 0})
        bucket["liters"] += liters
        bucket["cost"] += cost
        bucket["count"] += 1

    groups = [
        {"key": key, "count": v["count"], "liters": str(v["liters"]), "cost": str(v["cost"])}
        for key, v in grouped.items()
    ]

    return {
        "total": {"liters": str(total_liters), "cost": str(total_cost), "records": len(rows)},
        "group_by": group_by,
        "groups": groups,
    }


def _parse_uuids(values: List[str]) -> list:
    parsed = []
    for value in values:
        try:
            parsed.append(uuid.UUID(value))
        except ValueError:
            raise ValidationError(f"Invalid asset id: {value}")
    return parsed


def detect_anomalies(db: Session, query: FuelAnomaliesQuery) -> dict:
    days = query.days or settings.fuel_anomaly_days
    since = utcnow() - timedelta(days=days)

    q = db.query(FuelRecord).filter(FuelRecord.transaction_date >= since)
    if query.asset_id:
        q = q.filter(FuelRecord.asset_id == query.asset_id)
    rows = q.order_by(FuelRecord.transaction_date.desc()).limit(settings.fuel_analytics_row_cap).all()

    by_asset: Dict[str, List[Decimal]] = defaultdict(list)
    for r in rows:
        if r.fuel_efficiency is None:
            continue
        by_asset[str(r.asset_id)].append(as_decimal(r.fuel_efficiency))

    avg_by_asset = {
        asset_id: sum(values, ZERO) / Decimal(len(values))
        for asset_id, values in by_asset.items()
        if values
    }

    high_factor = to_decimal(settings.fuel_anomaly_high_factor, "fuel_anomaly_high_factor")
    low_factor = to_decimal(settings.fuel_anomaly_low_factor, "fuel_anomaly_low_factor")

    anomalies = []
    for r in rows:
        if r.fuel_efficiency is None:
            continue
        avg = avg_by_asset.get(str(r.asset_id))
        if avg is None:
            continue
        eff = as_decimal(r.fuel_efficiency)
        high = avg * high_factor
        low = avg * low_factor

        if eff > high:
            severity = "HIGH_CONSUMPTION"
        elif eff < low:
            severity = "LOW_CONSUMPTION"
        else:
            continue

        anomalies.append({
            "id": r.id,
            "asset_id": r.asset_id,
            "transaction_date": r.transaction_date,
            "fuel_efficiency": str(eff),
            "avg_fuel_efficiency": str(avg),
            "severity": severity,
            "quantity": decimal_str(r.quantity),
            "distance_since_last": decimal_str(r.distance_since_last),
            "hours_since_last": decimal_str(r.hours_since_last),
        })

    return {"days": days, "records": len(rows), "anomalies": anomalies}
