"""Pytest fixtures. Run from project root with: pytest tests/ -v"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("AUTO_CREATE_DB", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleetops.auth.security import create_access_token
from fleetops.db import Base, get_db
from fleetops.models.models import FleetAsset, FuelRecord, FuelTank
from fleetops.services.permissions import Caller


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture
def manager():
    return Caller.for_role("mgr-1", "OPERATIONS_MANAGER")


@pytest.fixture
def employee():
    return Caller.for_role("emp-1", "EMPLOYEE")


@pytest.fixture
def days_ago():
    def _days_ago(days: float) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=days)
    return _days_ago


@pytest.fixture
def make_asset(db):
    counter = {"n": 0}

    def _make_asset(**kwargs) -> FleetAsset:
        counter["n"] += 1
        fields = {
            "asset_code": f"TRK-{counter['n']:03d}",
            "name": f"Truck {counter['n']}",
            "asset_type": "vehicle",
            "fuel_type": "DIESEL",
            "status": "ACTIVE",
        }
        fields.update(kwargs)
        asset = FleetAsset(**fields)
        db.add(asset)
        db.commit()
        db.refresh(asset)
        return asset

    return _make_asset


@pytest.fixture
def make_tank(db):
    def _make_tank(**kwargs) -> FuelTank:
        fields = {
            "name": "Main tank",
            "location": "North yard",
            "fuel_type": "DIESEL",
            "capacity": Decimal("1000"),
            "current_level": Decimal("0"),
            "reorder_level": Decimal("100"),
            "status": "ACTIVE",
        }
        fields.update(kwargs)
        tank = FuelTank(**fields)
        db.add(tank)
        db.commit()
        db.refresh(tank)
        return tank

    return _make_tank


_NUMERIC = {"odometer_reading", "hours_reading", "distance_since_last", "hours_since_last", "fuel_efficiency"}


@pytest.fixture
def add_fuel_record(db):
    """Insert a ledger row directly, bypassing the recorder."""
    def _add(asset, transaction_date, quantity="40", unit_price="1", **kwargs) -> FuelRecord:
        qty = Decimal(quantity)
        price = Decimal(unit_price)
        fields = {
            "asset_id": asset.id,
            "transaction_date": transaction_date,
            "transaction_type": "PURCHASE",
            "fuel_type": asset.fuel_type,
            "quantity": qty,
            "unit_price": price,
            "total_cost": qty * price,
        }
        for key, value in kwargs.items():
            fields[key] = Decimal(value) if key in _NUMERIC and value is not None else value
        record = FuelRecord(**fields)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _add


@pytest.fixture
def client(db):
    from fleetops.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(role: str = "OPERATIONS_MANAGER", user_id: str = "mgr-1") -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return _headers
