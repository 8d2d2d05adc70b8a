"""
Redirection Store - persisted topology for a traffic-redirection controller.

Tracks which network ports are inspected, through which inspection ports,
and under what redirection policy.

Usage:
    from redirection_store import RedirectionStore, PortElement, InspectionPortDescriptor

    with RedirectionStore.from_settings() as store:
        hook = store.install_inspection_hook(
            PortElement("vm-port-1", parent_id="vm-1"),
            InspectionPortDescriptor(PortElement("ins-in"), PortElement("ins-out")),
            tag=100,
        )
"""

from .config import SUPPORTS_PORT_GROUP_VALUE, StoreSettings, get_settings, supports_port_group
from .db import Database, connect, get_db_connection
from .elements import (
    Element,
    InspectionPortDescriptor,
    InspectionPortElement,
    NetworkElement,
    PortElement,
)
from .models import (
    FailurePolicyType,
    InspectionHook,
    InspectionPort,
    Port,
    PortGroup,
    TagEncapsulationType,
)
from .schema import init_schema
from .service import RedirectionStore
from .session import TopologySession
from .validation import InvalidArgumentError

__all__ = [
    "Database",
    "Element",
    "FailurePolicyType",
    "InspectionHook",
    "InspectionPort",
    "InspectionPortDescriptor",
    "InspectionPortElement",
    "InvalidArgumentError",
    "NetworkElement",
    "Port",
    "PortElement",
    "PortGroup",
    "RedirectionStore",
    "StoreSettings",
    "SUPPORTS_PORT_GROUP_VALUE",
    "TagEncapsulationType",
    "TopologySession",
    "connect",
    "get_db_connection",
    "get_settings",
    "init_schema",
    "supports_port_group",
]
