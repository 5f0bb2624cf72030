"""Tests for fuel efficiency, consumption and anomaly reports."""

from decimal import Decimal

import pytest

from fleetops.errors import ValidationError
from fleetops.schemas.fuel import (
    FuelAnomaliesQuery,
    FuelConsumptionQuery,
    FuelEfficiencyQuery,
    FuelReportGroupBy,
)
from fleetops.services import fuel_analytics


def _efficiency_record(add_fuel_record, asset, when, efficiency, per="distance", **kwargs):
    if per == "distance":
        kwargs.setdefault("distance_since_last", "100")
    else:
        kwargs.setdefault("hours_since_last", "10")
    return add_fuel_record(asset, when, fuel_efficiency=efficiency, **kwargs)


def test_efficiency_keeps_distance_and_time_means_apart(db, make_asset, add_fuel_record, days_ago):
    truck = make_asset()
    loader = make_asset(asset_type="heavy_machinery")
    _efficiency_record(add_fuel_record, truck, days_ago(3), "10")
    _efficiency_record(add_fuel_record, truck, days_ago(2), "12")
    _efficiency_record(add_fuel_record, loader, days_ago(2), "3", per="hours")
    add_fuel_record(truck, days_ago(1))  # no efficiency

    report = fuel_analytics.get_fuel_efficiency(db, FuelEfficiencyQuery())
    assert report["records"] == 4
    assert Decimal(report["totals"]["liters"]) == Decimal("160")
    assert Decimal(report["totals"]["cost"]) == Decimal("160")
    assert Decimal(report["averages"]["l_per_100"]) == Decimal("11")
    assert Decimal(report["averages"]["l_per_hour"]) == Decimal("3")


def test_efficiency_means_are_none_without_data(db):
    report = fuel_analytics.get_fuel_efficiency(db, FuelEfficiencyQuery())
    assert report["records"] == 0
    assert report["totals"] == {"liters": "0", "cost": "0"}
    assert report["averages"]["l_per_100"] is None
    assert report["averages"]["l_per_hour"] is None


def test_efficiency_default_window_and_explicit_range(db, make_asset, add_fuel_record, days_ago):
    asset = make_asset()
    _efficiency_record(add_fuel_record, asset, days_ago(90), "20")
    _efficiency_record(add_fuel_record, asset, days_ago(5), "10")

    rolling = fuel_analytics.get_fuel_efficiency(db, FuelEfficiencyQuery(asset_id=asset.id))
    assert rolling["records"] == 1
    assert Decimal(rolling["averages"]["l_per_100"]) == Decimal("10")

    wide = fuel_analytics.get_fuel_efficiency(db, FuelEfficiencyQuery(days=120))
    assert wide["records"] == 2

    ranged = fuel_analytics.get_fuel_efficiency(
        db, FuelEfficiencyQuery(date_from=days_ago(100), date_to=days_ago(80))
    )
    assert ranged["records"] == 1
    assert Decimal(ranged["averages"]["l_per_100"]) == Decimal("20")


def test_consumption_groups_by_site_with_unknown_bucket(db, make_asset, add_fuel_record, days_ago):
    asset = make_asset()
    add_fuel_record(asset, days_ago(3), quantity="10", unit_price="2", site_location="North")
    add_fuel_record(asset, days_ago(2), quantity="30", unit_price="2", site_location="North")
    add_fuel_record(asset, days_ago(1), quantity="5", unit_price="2")

    report = fuel_analytics.get_fuel_consumption_report(db, FuelConsumptionQuery(group_by=FuelReportGroupBy.site))
    groups = {g["key"]: g for g in report["groups"]}

    assert set(groups) == {"North", "Unknown"}
    assert groups["North"]["count"] == 2
    assert Decimal(groups["North"]["liters"]) == Decimal("40")
    assert Decimal(groups["North"]["cost"]) == Decimal("80")
    assert Decimal(groups["Unknown"]["liters"]) == Decimal("5")
    assert report["total"]["records"] == 3
    assert Decimal(report["total"]["liters"]) == Decimal("45")


def test_consumption_defaults_to_asset_grouping_and_filters_ids(db, make_asset, add_fuel_record, days_ago):
    a = make_asset()
    b = make_asset()
    c = make_asset()
    for asset in (a, b, c):
        add_fuel_record(asset, days_ago(1))

    report = fuel_analytics.get_fuel_consumption_report(
        db, FuelConsumptionQuery(asset_ids=f"{a.id}, {b.id}")
    )
    assert report["group_by"] == FuelReportGroupBy.asset
    assert {g["key"] for g in report["groups"]} == {str(a.id), str(b.id)}


def test_consumption_rejects_malformed_asset_ids(db):
    with pytest.raises(ValidationError):
        fuel_analytics.get_fuel_consumption_report(db, FuelConsumptionQuery(asset_ids="not-a-uuid"))


def test_identical_efficiencies_have_no_anomalies(db, make_asset, add_fuel_record, days_ago):
    asset = make_asset()
    for day in (4, 3, 2, 1):
        _efficiency_record(add_fuel_record, asset, days_ago(day), "10")

    report = fuel_analytics.detect_anomalies(db, FuelAnomaliesQuery())
    assert report["anomalies"] == []
    assert report["days"] == 60


def test_high_consumption_is_flagged(db, make_asset, add_fuel_record, days_ago):
    asset = make_asset()
    for day in (4, 3, 2):
        _efficiency_record(add_fuel_record, asset, days_ago(day), "10")
    spike = _efficiency_record(add_fuel_record, asset, days_ago(1), "40")

    anomalies = fuel_analytics.detect_anomalies(db, FuelAnomaliesQuery(asset_id=asset.id))["anomalies"]
    assert len(anomalies) == 1
    assert anomalies[0]["id"] == spike.id
    assert anomalies[0]["severity"] == "HIGH_CONSUMPTION"
    assert Decimal(anomalies[0]["avg_fuel_efficiency"]) == Decimal("17.5")


def test_low_consumption_is_flagged(db, make_asset, add_fuel_record, days_ago):
    asset = make_asset()
    for day in (4, 3, 2):
        _efficiency_record(add_fuel_record, asset, days_ago(day), "10")
    _efficiency_record(add_fuel_record, asset, days_ago(1), "2")

    anomalies = fuel_analytics.detect_anomalies(db, FuelAnomaliesQuery())["anomalies"]
    assert [a["severity"] for a in anomalies] == ["LOW_CONSUMPTION"]


def test_anomaly_means_are_per_asset(db, make_asset, add_fuel_record, days_ago):
    thirsty = make_asset()
    frugal = make_asset()
    for day in (3, 2, 1):
        _efficiency_record(add_fuel_record, thirsty, days_ago(day), "40")
        _efficiency_record(add_fuel_record, frugal, days_ago(day), "10")

    assert fuel_analytics.detect_anomalies(db, FuelAnomaliesQuery())["anomalies"] == []
