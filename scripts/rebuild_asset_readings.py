#!/usr/bin/env python3
"""
Rebuild the cached odometer/hours of fleet assets from the fuel ledger.

Run after a failed snapshot write (asset_snapshot_update_failed in the logs),
or for every asset when in doubt:

    python scripts/rebuild_asset_readings.py              # all assets
    python scripts/rebuild_asset_readings.py <asset-id>   # one asset
"""
import argparse
import os
import sys
import uuid

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

from fleetops.db import session_scope
from fleetops.logging import setup_logging
from fleetops.models.models import FleetAsset
from fleetops.services.fuel_records import rebuild_asset_readings


def rebuild(asset_ids=None) -> int:
    """Returns the number of assets whose cache changed."""
    changed = 0
    with session_scope() as db:
        if not asset_ids:
            asset_ids = [row.id for row in db.query(FleetAsset.id).all()]
        print(f"Rebuilding readings for {len(asset_ids)} asset(s)...")
        for asset_id in asset_ids:
            result = rebuild_asset_readings(db, asset_id)
            if result["changed"]:
                changed += 1
                print(f"  [OK] {asset_id}: odometer={result['current_odometer']} hours={result['current_hours']}")
            else:
                print(f"  [SKIP] {asset_id}: up to date")
    print(f"Done. {changed} asset(s) updated.")
    return changed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rebuild asset reading caches from the fuel ledger")
    parser.add_argument("asset_ids", nargs="*", type=uuid.UUID, help="Asset ids (default: all assets)")
    args = parser.parse_args()
    setup_logging()
    rebuild(args.asset_ids)
