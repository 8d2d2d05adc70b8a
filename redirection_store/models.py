"""
Entity model for the redirection topology.

Four record types: Port, PortGroup, InspectionPort and InspectionHook.
Relationships are held as entity ids; the session resolves an id to the live
instance. Ids are monotonic ULIDs generated at construction: within one
process, ids created in the same millisecond still increase, so sorting by id
sorts by creation order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from ulid import monotonic as ulid


def new_id() -> str:
    return str(ulid.new())


class TagEncapsulationType(str, Enum):
    """How redirected traffic is tagged on the way to the inspection port."""

    VLAN = "VLAN"
    VXLAN = "VXLAN"
    MPLS = "MPLS"
    GRE = "GRE"


class FailurePolicyType(str, Enum):
    """What happens to traffic when the inspection port is unavailable."""

    FAIL_OPEN = "FAIL_OPEN"
    FAIL_CLOSE = "FAIL_CLOSE"
    NA = "NA"  # no action


@dataclass(eq=False)
class Port:
    """
    Persisted representation of one network interface.

    A port that is the inspected port of a hook is owned by that hook alone
    and is deleted with it.
    """

    TABLE: ClassVar[str] = "port"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "id", "element_id", "device_owner_id", "mac_addresses", "port_ips", "port_group_id",
    )

    element_id: str | None = None
    device_owner_id: str | None = None
    mac_addresses: list[str] = field(default_factory=list)
    port_ips: list[str] = field(default_factory=list)
    port_group_id: str | None = None

    # Derived from inspection_hook.inspected_port_id
    inspection_hook_id: str | None = None

    id: str = field(default_factory=new_id)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.element_id,
            self.device_owner_id,
            json.dumps(self.mac_addresses),
            json.dumps(self.port_ips),
            self.port_group_id,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Port:
        return cls(
            id=row[0],
            element_id=row[1],
            device_owner_id=row[2],
            mac_addresses=json.loads(row[3] or "[]"),
            port_ips=json.loads(row[4] or "[]"),
            port_group_id=row[5],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "element_id": self.element_id,
            "device_owner_id": self.device_owner_id,
            "mac_addresses": list(self.mac_addresses),
            "port_ips": list(self.port_ips),
            "port_group_id": self.port_group_id,
            "inspection_hook_id": self.inspection_hook_id,
        }


@dataclass(eq=False)
class PortGroup:
    """A named collection of ports sharing one parent."""

    TABLE: ClassVar[str] = "port_group"
    COLUMNS: ClassVar[tuple[str, ...]] = ("id", "element_id", "parent_id")

    element_id: str | None = None
    parent_id: str | None = None

    # Derived from port.port_group_id
    port_ids: list[str] = field(default_factory=list)

    id: str = field(default_factory=new_id)

    def to_row(self) -> tuple:
        return (self.id, self.element_id, self.parent_id)

    @classmethod
    def from_row(cls, row: tuple) -> PortGroup:
        return cls(id=row[0], element_id=row[1], parent_id=row[2])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "element_id": self.element_id,
            "parent_id": self.parent_id,
            "port_ids": list(self.port_ids),
        }


@dataclass(eq=False)
class InspectionPort:
    """An in-line inspection point: an ingress and an egress port, possibly the same one."""

    TABLE: ClassVar[str] = "inspection_port"
    COLUMNS: ClassVar[tuple[str, ...]] = ("id", "element_id", "ingress_port_id", "egress_port_id")

    element_id: str = field(default_factory=new_id)
    ingress_port_id: str | None = None
    egress_port_id: str | None = None

    # Derived from inspection_hook.inspection_port_id, ordered by hook id
    hook_ids: list[str] = field(default_factory=list)

    id: str = field(default_factory=new_id)

    def to_row(self) -> tuple:
        return (self.id, self.element_id, self.ingress_port_id, self.egress_port_id)

    @classmethod
    def from_row(cls, row: tuple) -> InspectionPort:
        return cls(id=row[0], element_id=row[1], ingress_port_id=row[2], egress_port_id=row[3])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "element_id": self.element_id,
            "ingress_port_id": self.ingress_port_id,
            "egress_port_id": self.egress_port_id,
            "hook_ids": list(self.hook_ids),
        }


@dataclass(eq=False)
class InspectionHook:
    """Redirection policy binding one inspected port to one inspection port."""

    TABLE: ClassVar[str] = "inspection_hook"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "id", "inspected_port_id", "inspection_port_id",
        "hook_order", "tag", "enc_type", "failure_policy_type",
    )

    inspected_port_id: str | None = None
    inspection_port_id: str | None = None
    order: int | None = None
    tag: int | None = None
    enc_type: TagEncapsulationType = TagEncapsulationType.VLAN
    failure_policy_type: FailurePolicyType = FailurePolicyType.NA

    id: str = field(default_factory=new_id)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.inspected_port_id,
            self.inspection_port_id,
            self.order,
            self.tag,
            self.enc_type.value,
            self.failure_policy_type.value,
        )

    @classmethod
    def from_row(cls, row: tuple) -> InspectionHook:
        return cls(
            id=row[0],
            inspected_port_id=row[1],
            inspection_port_id=row[2],
            order=row[3],
            tag=row[4],
            enc_type=TagEncapsulationType(row[5]),
            failure_policy_type=FailurePolicyType(row[6]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "inspected_port_id": self.inspected_port_id,
            "inspection_port_id": self.inspection_port_id,
            "order": self.order,
            "tag": self.tag,
            "enc_type": self.enc_type.value,
            "failure_policy_type": self.failure_policy_type.value,
        }


# Insert order that satisfies the foreign keys
FLUSH_ORDER: tuple[type, ...] = (PortGroup, Port, InspectionPort, InspectionHook)
