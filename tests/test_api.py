"""HTTP tests through the FastAPI app with the database dependency overridden."""

import uuid
from decimal import Decimal


def _create_asset(client, headers, **kwargs):
    body = {"asset_code": "TRK-100", "name": "Haul truck", "fuel_type": "DIESEL"}
    body.update(kwargs)
    resp = client.post("/fleet/assets", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_missing_or_bad_token_is_401(client):
    assert client.get("/fleet/fuel").status_code == 401
    resp = client.get("/fleet/fuel", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_record_fuel_and_list(client, auth_headers, days_ago):
    headers = auth_headers()
    asset = _create_asset(client, headers)

    for day, odo in ((2, "1000"), (1, "1400")):
        resp = client.post(
            "/fleet/fuel",
            json={
                "asset_id": asset["id"],
                "transaction_date": days_ago(day).isoformat(),
                "fuel_type": "DIESEL",
                "quantity": "40",
                "unit_price": "1.25",
                "odometer_reading": odo,
            },
            headers=headers,
        )
        assert resp.status_code == 200, resp.text

    body = resp.json()
    assert Decimal(body["total_cost"]) == Decimal("50")
    assert Decimal(body["fuel_efficiency"]) == Decimal("10")

    page = client.get("/fleet/fuel", params={"asset_id": asset["id"]}, headers=headers).json()
    assert page["total"] == 2
    assert page["page_size"] == 25

    detail = client.get(f"/fleet/assets/{asset['id']}", headers=headers).json()
    assert Decimal(detail["current_odometer"]) == Decimal("1400")

    history = client.get(f"/fleet/assets/{asset['id']}/fuel", headers=headers).json()
    assert len(history) == 2


def test_domain_errors_map_to_status_codes(client, auth_headers, days_ago):
    headers = auth_headers()
    asset = _create_asset(client, headers, current_odometer="100")

    missing = client.post(
        "/fleet/fuel",
        json={
            "asset_id": str(uuid.uuid4()),
            "transaction_date": days_ago(1).isoformat(),
            "fuel_type": "DIESEL",
            "quantity": "10",
            "unit_price": "1",
        },
        headers=headers,
    )
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Fleet asset not found"}

    backwards = client.post(
        "/fleet/fuel",
        json={
            "asset_id": asset["id"],
            "transaction_date": days_ago(1).isoformat(),
            "fuel_type": "DIESEL",
            "quantity": "10",
            "unit_price": "1",
            "odometer_reading": "95",
        },
        headers=headers,
    )
    assert backwards.status_code == 400

    forbidden = client.post(
        "/fleet/fuel/tanks",
        json={"name": "T", "location": "Yard", "fuel_type": "DIESEL", "capacity": "100"},
        headers=auth_headers(role="EMPLOYEE", user_id="emp-1"),
    )
    assert forbidden.status_code == 403


def test_duplicate_asset_code_is_rejected(client, auth_headers):
    headers = auth_headers()
    _create_asset(client, headers)
    resp = client.post("/fleet/assets", json={"asset_code": "TRK-100", "name": "Again"}, headers=headers)
    assert resp.status_code == 400


def test_tank_flow(client, auth_headers):
    headers = auth_headers()
    tank = client.post(
        "/fleet/fuel/tanks",
        json={"name": "T1", "location": "Yard", "fuel_type": "DIESEL", "capacity": "1000",
              "current_level": "900", "reorder_level": "950"},
        headers=headers,
    ).json()

    low = client.get("/fleet/fuel/tanks/low", headers=headers).json()
    assert [t["id"] for t in low] == [tank["id"]]

    over = client.post(f"/fleet/fuel/tanks/{tank['id']}/refill", json={"quantity": "150"}, headers=headers)
    assert over.status_code == 400
    assert over.json()["detail"] == "Refill would exceed tank capacity"

    ok = client.post(f"/fleet/fuel/tanks/{tank['id']}/refill", json={"quantity": "100"}, headers=headers)
    assert ok.status_code == 200
    assert Decimal(ok.json()["balance_after"]) == Decimal("1000")

    short = client.post(f"/fleet/fuel/tanks/{tank['id']}/dispense", json={"quantity": "1001"}, headers=headers)
    assert short.status_code == 400

    txns = client.get(f"/fleet/fuel/tanks/{tank['id']}/transactions", params={"limit": 5}, headers=headers).json()
    assert len(txns) == 1


def test_breakdown_flow_updates_asset_status(client, auth_headers, days_ago):
    headers = auth_headers()
    asset = _create_asset(client, headers)

    bd = client.post(
        "/fleet/breakdowns",
        json={
            "asset_id": asset["id"],
            "breakdown_date": days_ago(0).isoformat(),
            "title": "Gearbox noise",
            "category": "TRANSMISSION",
            "severity": "MEDIUM",
        },
        headers=auth_headers(role="EMPLOYEE", user_id="emp-7"),
    )
    assert bd.status_code == 200, bd.text
    bd = bd.json()
    assert bd["status"] == "REPORTED"
    assert client.get(f"/fleet/assets/{asset['id']}", headers=headers).json()["status"] == "BREAKDOWN"

    active = client.get("/fleet/breakdowns/active", headers=headers).json()
    assert [b["id"] for b in active] == [bd["id"]]

    bad = client.put(f"/fleet/breakdowns/{bd['id']}", json={"status": "CLOSED"}, headers=headers)
    assert bad.status_code == 400

    resolved = client.put(f"/fleet/breakdowns/{bd['id']}/resolve", json={"resolution": "Replaced bearing"}, headers=headers)
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "RESOLVED"
    assert client.get(f"/fleet/assets/{asset['id']}", headers=headers).json()["status"] == "ACTIVE"

    stats = client.get("/fleet/breakdowns/stats", headers=headers).json()
    assert stats["total"] == 1
    assert stats["by_status"] == {"RESOLVED": 1}

    refreshed = client.post(f"/fleet/assets/{asset['id']}/refresh-status", headers=headers).json()
    assert refreshed["status"] == "ACTIVE"


def test_analytics_endpoints(client, auth_headers):
    headers = auth_headers()
    eff = client.get("/fleet/fuel/efficiency", headers=headers)
    assert eff.status_code == 200
    assert eff.json()["averages"] == {"l_per_100": None, "l_per_hour": None}

    cons = client.get("/fleet/fuel/consumption", params={"group_by": "SITE"}, headers=headers)
    assert cons.status_code == 200
    assert cons.json()["group_by"] == "SITE"

    assert client.get("/fleet/fuel/anomalies", headers=headers).json()["anomalies"] == []

    employee = auth_headers(role="EMPLOYEE", user_id="emp-1")
    assert client.get("/fleet/fuel/efficiency", headers=employee).status_code == 403
