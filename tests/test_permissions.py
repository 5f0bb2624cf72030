"""Tests for role to capability mapping."""

import pytest

from fleetops.errors import ForbiddenError
from fleetops.services.permissions import Caller, Capability, capabilities_for_role, require


@pytest.mark.parametrize("role", ["SUPER_ADMIN", "CEO", "CFO", "OPERATIONS_MANAGER", "WAREHOUSE_MANAGER"])
def test_managers_hold_every_capability(role):
    assert capabilities_for_role(role) == frozenset(Capability)


def test_department_head_reads_analytics_but_does_not_manage():
    caps = capabilities_for_role("DEPARTMENT_HEAD")
    assert Capability.fuel_analytics in caps
    assert Capability.fuel_record in caps
    assert Capability.fuel_manage not in caps
    assert Capability.fleet_manage not in caps


def test_employee_records_and_reports_only():
    caps = capabilities_for_role("EMPLOYEE")
    assert caps == {
        Capability.fuel_read,
        Capability.fuel_record,
        Capability.fleet_read,
        Capability.breakdown_report,
    }


def test_roles_are_case_insensitive_and_unknown_roles_get_nothing():
    assert capabilities_for_role("employee") == capabilities_for_role("EMPLOYEE")
    assert capabilities_for_role("VISITOR") == frozenset()
    assert capabilities_for_role(None) == frozenset()


def test_require():
    caller = Caller.for_role(123, "EMPLOYEE")
    assert caller.user_id == "123"
    assert require(caller, Capability.fuel_record) is caller
    with pytest.raises(ForbiddenError):
        require(caller, Capability.fuel_manage)
