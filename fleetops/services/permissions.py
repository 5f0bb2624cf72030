"""
Capability checks for fleet operations.

Roles come from the external auth layer as plain strings. They are mapped
once to a typed capability set; services only ever ask for a Capability.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from ..errors import ForbiddenError


class Capability(str, Enum):
    fuel_read = "fuel:read"
    fuel_record = "fuel:record"
    fuel_manage = "fuel:manage"
    fuel_analytics = "fuel:analytics"
    fleet_read = "fleet:read"
    breakdown_report = "fleet:breakdowns:report"
    fleet_manage = "fleet:manage"


_MANAGER = frozenset(Capability)
_DEPARTMENT_HEAD = frozenset({
    Capability.fuel_read,
    Capability.fuel_record,
    Capability.fuel_analytics,
    Capability.fleet_read,
    Capability.breakdown_report,
})
_EMPLOYEE = frozenset({
    Capability.fuel_read,
    Capability.fuel_record,
    Capability.fleet_read,
    Capability.breakdown_report,
})

ROLE_CAPABILITIES = {
    "SUPER_ADMIN": _MANAGER,
    "CEO": _MANAGER,
    "CFO": _MANAGER,
    "OPERATIONS_MANAGER": _MANAGER,
    "WAREHOUSE_MANAGER": _MANAGER,
    "DEPARTMENT_HEAD": _DEPARTMENT_HEAD,
    "EMPLOYEE": _EMPLOYEE,
}


def capabilities_for_role(role: Optional[str]) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES.get((role or "").upper(), frozenset())


@dataclass(frozen=True)
class Caller:
    """Authenticated caller as handed over by the auth layer."""
    user_id: str
    role: str
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, user_id: str, role: str) -> "Caller":
        return cls(user_id=str(user_id), role=role, capabilities=capabilities_for_role(role))

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def require(caller: Caller, capability: Capability) -> Caller:
    if not caller.can(capability):
        raise ForbiddenError("Not allowed")
    return caller
