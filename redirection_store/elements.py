"""
Caller-side descriptions of network elements.

The store never owns these objects; it reads them once to find or create the
matching persisted records. Any object with the right attributes will do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class Element(Protocol):
    @property
    def element_id(self) -> str | None: ...


@runtime_checkable
class NetworkElement(Element, Protocol):
    """One network interface as the controller sees it."""

    @property
    def parent_id(self) -> str | None: ...

    @property
    def mac_addresses(self) -> Sequence[str]: ...

    @property
    def port_ips(self) -> Sequence[str]: ...


@runtime_checkable
class InspectionPortElement(Element, Protocol):
    """An inspection point described by its ingress and egress interfaces."""

    @property
    def ingress_port(self) -> NetworkElement | None: ...

    @property
    def egress_port(self) -> NetworkElement | None: ...


@dataclass(frozen=True)
class PortElement:
    """Plain NetworkElement implementation."""

    element_id: str | None = None
    parent_id: str | None = None
    mac_addresses: tuple[str, ...] = field(default_factory=tuple)
    port_ips: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InspectionPortDescriptor:
    """Plain InspectionPortElement implementation."""

    ingress_port: NetworkElement | None
    egress_port: NetworkElement | None
    element_id: str | None = None
