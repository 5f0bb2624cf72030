"""
Asset status reconciliation.

An asset's status is recomputed from current breakdown and maintenance
signals only; the previous status is never consulted except for terminal
states, which are left alone.
"""
import uuid
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import BreakdownLog, FleetAsset, MaintenanceRecord
from ..schemas.fleet import BreakdownStatus, FleetAssetStatus, MaintenanceStatus
from .numbers import utcnow

logger = structlog.get_logger(__name__)

TERMINAL_ASSET_STATUSES = frozenset({FleetAssetStatus.decommissioned.value, FleetAssetStatus.sold.value})
INACTIVE_BREAKDOWN_STATUSES = (BreakdownStatus.resolved.value, BreakdownStatus.closed.value)
OPEN_MAINTENANCE_STATUSES = (MaintenanceStatus.scheduled.value, MaintenanceStatus.in_progress.value)


def count_active_breakdowns(db: Session, asset_id: uuid.UUID) -> int:
    return db.query(BreakdownLog).filter(
        BreakdownLog.asset_id == asset_id,
        BreakdownLog.status.notin_(INACTIVE_BREAKDOWN_STATUSES),
    ).count()


def count_open_maintenance(db: Session, asset_id: uuid.UUID) -> int:
    return db.query(MaintenanceRecord).filter(
        MaintenanceRecord.asset_id == asset_id,
        MaintenanceRecord.status.in_(OPEN_MAINTENANCE_STATUSES),
    ).count()


def reconcile_status(current_status: str, active_breakdowns: int, open_maintenance: int) -> str:
    if current_status in TERMINAL_ASSET_STATUSES:
        return current_status
    if active_breakdowns > 0:
        return FleetAssetStatus.breakdown.value
    if open_maintenance > 0:
        return FleetAssetStatus.in_maintenance.value
    return FleetAssetStatus.active.value


def refresh_asset_status(db: Session, asset_id: uuid.UUID) -> Optional[str]:
    """Recompute and persist the status of an asset. Safe to re-run."""
    asset = db.query(FleetAsset).filter(FleetAsset.id == asset_id).first()
    if not asset:
        return None

    current = asset.status
    if current in TERMINAL_ASSET_STATUSES:
        return current

    active_breakdowns = count_active_breakdowns(db, asset_id)
    # Maintenance only matters when no breakdown is active
    open_maintenance = count_open_maintenance(db, asset_id) if active_breakdowns == 0 else 0
    status = reconcile_status(current, active_breakdowns, open_maintenance)

    if status != current:
        asset.status = status
        asset.updated_at = utcnow()
        db.commit()
        logger.info(
            "asset_status_changed",
            asset_id=str(asset_id),
            previous=current,
            status=status,
            active_breakdowns=active_breakdowns,
            open_maintenance=open_maintenance,
        )
    return status
