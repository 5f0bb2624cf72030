"""
Breakdown report lifecycle.

REPORTED -> ACKNOWLEDGED -> DIAGNOSING -> AWAITING_PARTS -> IN_REPAIR -> RESOLVED -> CLOSED

Status changes are checked against ALLOWED_TRANSITIONS at the command
boundary. Every mutation re-runs asset status reconciliation for the
breakdown's asset.
"""
import math
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import InvalidTransitionError, NotFoundError
from ..models.models import BreakdownLog
from ..schemas.fleet import (
    BreakdownAssign,
    BreakdownCreate,
    BreakdownQuery,
    BreakdownResolve,
    BreakdownStatus,
    BreakdownUpdate,
)
from .asset_status import INACTIVE_BREAKDOWN_STATUSES, refresh_asset_status
from .fuel_records import get_asset_or_404
from .numbers import HOURS_PLACES, MONEY_PLACES, as_decimal, to_decimal, to_decimal_or_none, to_utc, utcnow
from .permissions import Caller, Capability, require

logger = structlog.get_logger(__name__)

S = BreakdownStatus

_ACTIVE_TARGETS = {S.diagnosing, S.awaiting_parts, S.in_repair, S.resolved}

ALLOWED_TRANSITIONS: Dict[BreakdownStatus, FrozenSet[BreakdownStatus]] = {
    S.reported: frozenset({S.acknowledged} | _ACTIVE_TARGETS),
    S.acknowledged: frozenset(_ACTIVE_TARGETS),
    S.diagnosing: frozenset(_ACTIVE_TARGETS - {S.diagnosing}),
    S.awaiting_parts: frozenset(_ACTIVE_TARGETS - {S.awaiting_parts}),
    S.in_repair: frozenset(_ACTIVE_TARGETS - {S.in_repair}),
    S.resolved: frozenset({S.closed, S.in_repair}),
    S.closed: frozenset(),
}

ASSET_BREAKDOWNS_LIMIT = 200
ACTIVE_BREAKDOWNS_LIMIT = 500
STATS_ROW_CAP = 5000


def can_transition(current: str, requested: str) -> bool:
    if current == requested:
        return True
    return BreakdownStatus(requested) in ALLOWED_TRANSITIONS.get(BreakdownStatus(current), frozenset())


def validate_transition(current: str, requested: str) -> None:
    if not settings.breakdown_strict_transitions:
        return
    if not can_transition(current, requested):
        raise InvalidTransitionError(current, requested)


def _apply_status(breakdown: BreakdownLog, requested: Optional[BreakdownStatus]) -> None:
    if requested is None:
        return
    new_status = requested.value
    validate_transition(breakdown.status, new_status)
    if new_status != breakdown.status:
        logger.info(
            "breakdown_transition",
            breakdown_id=str(breakdown.id),
            asset_id=str(breakdown.asset_id),
            previous=breakdown.status,
            status=new_status,
        )
    breakdown.status = new_status


def get_breakdown(db: Session, breakdown_id: uuid.UUID) -> BreakdownLog:
    breakdown = db.query(BreakdownLog).filter(BreakdownLog.id == breakdown_id).first()
    if not breakdown:
        raise NotFoundError("Breakdown not found")
    return breakdown


def _finish(db: Session, breakdown: BreakdownLog) -> BreakdownLog:
    breakdown.updated_at = utcnow()
    db.commit()
    refresh_asset_status(db, breakdown.asset_id)
    db.refresh(breakdown)
    return breakdown


def create_breakdown(db: Session, payload: BreakdownCreate, caller: Caller) -> BreakdownLog:
    require(caller, Capability.breakdown_report)
    get_asset_or_404(db, payload.asset_id)

    breakdown = BreakdownLog(
        asset_id=payload.asset_id,
        breakdown_date=to_utc(payload.breakdown_date),
        reported_date=utcnow(),
        location=payload.location,
        site_location=payload.site_location,
        title=payload.title,
        description=payload.description,
        category=payload.category.value,
        severity=payload.severity.value,
        operational_impact=payload.operational_impact,
        estimated_downtime=to_decimal_or_none(payload.estimated_downtime, "estimated_downtime", HOURS_PLACES),
        production_loss=to_decimal_or_none(payload.production_loss, "production_loss", MONEY_PLACES),
        status=BreakdownStatus.reported.value,
        repair_cost=Decimal("0"),
        reported_by_id=caller.user_id,
        photos=list(payload.photos or []),
        documents=list(payload.documents or []),
        maintenance_record_id=payload.maintenance_record_id,
    )
    db.add(breakdown)
    db.commit()
    logger.info(
        "breakdown_reported",
        breakdown_id=str(breakdown.id),
        asset_id=str(payload.asset_id),
        severity=breakdown.severity,
    )
    refresh_asset_status(db, breakdown.asset_id)
    db.refresh(breakdown)
    return breakdown


_DECIMAL_FIELDS = {
    "estimated_downtime": HOURS_PLACES,
    "actual_downtime": HOURS_PLACES,
    "production_loss": MONEY_PLACES,
}


def update_breakdown(db: Session, breakdown_id: uuid.UUID, payload: BreakdownUpdate, caller: Caller) -> BreakdownLog:
    require(caller, Capability.fleet_manage)
    breakdown = get_breakdown(db, breakdown_id)

    data = payload.model_dump(exclude_unset=True)
    status = data.pop("status", None)

    for key, places in _DECIMAL_FIELDS.items():
        if key in data:
            data[key] = to_decimal_or_none(data[key], key, places)
    if "repair_cost" in data:
        data["repair_cost"] = to_decimal(data["repair_cost"], "repair_cost", MONEY_PLACES)
    for key in ("breakdown_date", "resolved_date"):
        if data.get(key) is not None:
            data[key] = to_utc(data[key])
    if data.get("category") is not None:
        data["category"] = data["category"].value
    if data.get("severity") is not None:
        data["severity"] = data["severity"].value
    if "assigned_to_id" in data:
        data["assigned_to_id"] = data["assigned_to_id"] or None

    _apply_status(breakdown, status)
    for key, value in data.items():
        setattr(breakdown, key, value)

    return _finish(db, breakdown)


def assign_breakdown(db: Session, breakdown_id: uuid.UUID, payload: BreakdownAssign, caller: Caller) -> BreakdownLog:
    require(caller, Capability.fleet_manage)
    breakdown = get_breakdown(db, breakdown_id)

    status = payload.status
    if status is None:
        # Legacy mode always acknowledges; strict mode only acknowledges a fresh report
        if breakdown.status == BreakdownStatus.reported.value or not settings.breakdown_strict_transitions:
            status = BreakdownStatus.acknowledged

    _apply_status(breakdown, status)
    breakdown.assigned_to_id = payload.assigned_to_id
    return _finish(db, breakdown)


def resolve_breakdown(db: Session, breakdown_id: uuid.UUID, payload: BreakdownResolve, caller: Caller) -> BreakdownLog:
    require(caller, Capability.fleet_manage)
    breakdown = get_breakdown(db, breakdown_id)

    actual_downtime = to_decimal_or_none(payload.actual_downtime, "actual_downtime", HOURS_PLACES)
    repair_cost = None
    if payload.repair_cost is not None:
        repair_cost = to_decimal(payload.repair_cost, "repair_cost", MONEY_PLACES)
    resolved_date = to_utc(payload.resolved_date) if payload.resolved_date else utcnow()

    _apply_status(breakdown, payload.status or BreakdownStatus.resolved)

    if payload.root_cause is not None:
        breakdown.root_cause = payload.root_cause
    if payload.resolution is not None:
        breakdown.resolution = payload.resolution
    if payload.repair_type is not None:
        breakdown.repair_type = payload.repair_type
    if payload.parts_used is not None:
        breakdown.parts_used = payload.parts_used
    if actual_downtime is not None:
        breakdown.actual_downtime = actual_downtime
    if repair_cost is not None:
        breakdown.repair_cost = repair_cost
    breakdown.resolved_date = resolved_date
    breakdown.resolved_by_id = caller.user_id

    return _finish(db, breakdown)


def list_breakdowns(db: Session, query: BreakdownQuery) -> dict:
    q = db.query(BreakdownLog)
    if query.asset_id:
        q = q.filter(BreakdownLog.asset_id == query.asset_id)
    if query.status:
        q = q.filter(BreakdownLog.status == query.status.value)
    if query.severity:
        q = q.filter(BreakdownLog.severity == query.severity.value)
    if query.category:
        q = q.filter(BreakdownLog.category == query.category.value)
    if query.site_location:
        q = q.filter(BreakdownLog.site_location.ilike(f"%{query.site_location}%"))
    if query.active_only:
        q = q.filter(BreakdownLog.status.notin_(INACTIVE_BREAKDOWN_STATUSES))
    if query.search:
        search_term = f"%{query.search}%"
        q = q.filter(
            or_(
                BreakdownLog.title.ilike(search_term),
                BreakdownLog.description.ilike(search_term),
                BreakdownLog.location.ilike(search_term),
                BreakdownLog.site_location.ilike(search_term),
            )
        )

    total = q.count()
    data = q.order_by(BreakdownLog.reported_date.desc()).offset(
        (query.page - 1) * query.page_size
    ).limit(query.page_size).all()
    return {
        "data": data,
        "page": query.page,
        "page_size": query.page_size,
        "total": total,
        "total_pages": max(1, math.ceil(total / query.page_size)),
    }


def list_asset_breakdowns(db: Session, asset_id: uuid.UUID) -> List[BreakdownLog]:
    get_asset_or_404(db, asset_id)
    return db.query(BreakdownLog).filter(
        BreakdownLog.asset_id == asset_id
    ).order_by(BreakdownLog.reported_date.desc()).limit(ASSET_BREAKDOWNS_LIMIT).all()


def active_breakdowns(db: Session) -> List[BreakdownLog]:
    return db.query(BreakdownLog).filter(
        BreakdownLog.status.notin_(INACTIVE_BREAKDOWN_STATUSES)
    ).order_by(BreakdownLog.reported_date.desc()).limit(ACTIVE_BREAKDOWNS_LIMIT).all()


def breakdown_stats(db: Session, days: int = 30) -> dict:
    since = utcnow() - timedelta(days=days)
    rows = db.query(BreakdownLog).filter(
        BreakdownLog.reported_date >= since
    ).limit(STATS_ROW_CAP).all()

    by_status: Dict[str, int] = {}
    by_severity: Dict[str, int] = {}
    by_category: Dict[str, int] = {}
    repair_cost = Decimal("0")
    estimated = Decimal("0")
    actual = Decimal("0")

    for r in rows:
        by_status[r.status] = by_status.get(r.status, 0) + 1
        by_severity[r.severity] = by_severity.get(r.severity, 0) + 1
        by_category[r.category] = by_category.get(r.category, 0) + 1
        repair_cost += as_decimal(r.repair_cost)
        estimated += as_decimal(r.estimated_downtime)
        actual += as_decimal(r.actual_downtime)

    return {
        "days": days,
        "total": len(rows),
        "by_status": by_status,
        "by_severity": by_severity,
        "by_category": by_category,
        "total_repair_cost": str(repair_cost),
        "total_estimated_downtime": str(estimated),
        "total_actual_downtime": str(actual),
    }
