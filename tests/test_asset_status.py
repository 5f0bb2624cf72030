"""Tests for asset status reconciliation."""

import uuid
from datetime import datetime, timezone

import pytest

from fleetops.models.models import BreakdownLog, FleetAsset, MaintenanceRecord
from fleetops.services.asset_status import reconcile_status, refresh_asset_status


def _breakdown(db, asset, status="REPORTED"):
    row = BreakdownLog(
        asset_id=asset.id,
        breakdown_date=datetime.now(timezone.utc),
        reported_date=datetime.now(timezone.utc),
        title="Hydraulic leak",
        category="HYDRAULIC",
        severity="HIGH",
        status=status,
    )
    db.add(row)
    db.commit()
    return row


def _maintenance(db, asset, status="SCHEDULED"):
    row = MaintenanceRecord(asset_id=asset.id, title="500h service", status=status)
    db.add(row)
    db.commit()
    return row


def _status(db, asset):
    return db.query(FleetAsset).filter(FleetAsset.id == asset.id).one().status


@pytest.mark.parametrize(
    "current,breakdowns,maintenance,expected",
    [
        ("ACTIVE", 0, 0, "ACTIVE"),
        ("ACTIVE", 1, 0, "BREAKDOWN"),
        ("ACTIVE", 0, 2, "IN_MAINTENANCE"),
        ("IN_MAINTENANCE", 1, 1, "BREAKDOWN"),
        ("BREAKDOWN", 0, 0, "ACTIVE"),
        ("DECOMMISSIONED", 3, 0, "DECOMMISSIONED"),
        ("SOLD", 0, 1, "SOLD"),
    ],
)
def test_reconcile_status(current, breakdowns, maintenance, expected):
    assert reconcile_status(current, breakdowns, maintenance) == expected


def test_active_breakdown_marks_asset(db, make_asset):
    asset = make_asset()
    _breakdown(db, asset)

    assert refresh_asset_status(db, asset.id) == "BREAKDOWN"
    assert _status(db, asset) == "BREAKDOWN"


def test_resolved_and_closed_breakdowns_do_not_count(db, make_asset):
    asset = make_asset(status="BREAKDOWN")
    _breakdown(db, asset, status="RESOLVED")
    _breakdown(db, asset, status="CLOSED")

    assert refresh_asset_status(db, asset.id) == "ACTIVE"


def test_open_maintenance_marks_asset(db, make_asset):
    asset = make_asset()
    _maintenance(db, asset, status="IN_PROGRESS")
    _maintenance(db, asset, status="COMPLETED")

    assert refresh_asset_status(db, asset.id) == "IN_MAINTENANCE"


def test_breakdown_wins_over_maintenance(db, make_asset):
    asset = make_asset()
    _maintenance(db, asset)
    _breakdown(db, asset, status="IN_REPAIR")

    assert refresh_asset_status(db, asset.id) == "BREAKDOWN"


def test_terminal_status_is_left_alone(db, make_asset):
    asset = make_asset(status="SOLD")
    _breakdown(db, asset)

    assert refresh_asset_status(db, asset.id) == "SOLD"
    assert _status(db, asset) == "SOLD"


def test_refresh_is_idempotent(db, make_asset):
    asset = make_asset()
    _breakdown(db, asset)

    first = refresh_asset_status(db, asset.id)
    stamp = db.query(FleetAsset).filter(FleetAsset.id == asset.id).one().updated_at
    second = refresh_asset_status(db, asset.id)

    assert first == second == "BREAKDOWN"
    assert db.query(FleetAsset).filter(FleetAsset.id == asset.id).one().updated_at == stamp


def test_missing_asset_returns_none(db):
    assert refresh_asset_status(db, uuid.uuid4()) is None
