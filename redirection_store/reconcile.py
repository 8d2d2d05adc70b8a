"""
Find-or-create resolution of network elements to Port records.

A port is looked up by the element's external identifier; when there is
none, a new Port is staged in the current unit. Nothing is written until the
unit flushes.

The check-then-create step is not atomic across sessions: two sessions that
reconcile the same unseen identifier concurrently will both insert a row.
Lookups tolerate the duplicate (warn and pick the oldest).
"""

from __future__ import annotations

import logging
from typing import Iterable

from .elements import NetworkElement
from .models import Port
from .queries import TopologyQueries
from .session import TopologySession
from .validation import require_inspected_ports, require_network_element

logger = logging.getLogger(__name__)


def make_port(element: NetworkElement) -> Port:
    """Construct an unsaved Port from an element description."""
    return Port(
        element_id=element.element_id,
        device_owner_id=element.parent_id,
        mac_addresses=list(element.mac_addresses or ()),
        port_ips=list(element.port_ips or ()),
    )


class PortReconciler:
    """Turns element descriptions into Port records, reusing stored ones."""

    def __init__(self, session: TopologySession, queries: TopologyQueries | None = None):
        self.session = session
        self.queries = queries or TopologyQueries(session)

    def reconcile_port(self, element: NetworkElement) -> Port:
        """Return the stored Port for the element's id, or stage a new one."""
        require_network_element(element)

        with self.session.required():
            port = None
            if element.element_id is not None:
                port = self.queries.find_port_by_element_id(element.element_id)

            if port is None:
                port = self.session.add(make_port(element))
                logger.debug("Staged new Port %s for element %s", port.id, element.element_id)
            return port

    def reconcile_ports(self, elements: Iterable[NetworkElement] | None) -> set[Port]:
        """Reconcile each element; elements that resolve to the same Port collapse."""
        require_inspected_ports(elements)
        elements = list(elements)
        for element in elements:
            require_network_element(element)

        with self.session.required():
            return {self.reconcile_port(element) for element in elements}

    def reconcile_free_port(self, element: NetworkElement) -> Port:
        """
        Like reconcile_port, but never returns a Port an inspection hook owns.

        The oldest stored Port for the element id that no hook inspects is
        reused; when every candidate is owned, a new Port is staged.
        """
        require_network_element(element)

        with self.session.required():
            port = None
            if element.element_id is not None:
                port = self.queries.find_free_port_by_element_id(element.element_id)

            if port is None:
                port = self.session.add(make_port(element))
                logger.debug("Staged new Port %s for element %s", port.id, element.element_id)
            return port

    def reconcile_free_ports(self, elements: Iterable[NetworkElement] | None) -> set[Port]:
        require_inspected_ports(elements)
        elements = list(elements)
        for element in elements:
            require_network_element(element)

        with self.session.required():
            return {self.reconcile_free_port(element) for element in elements}
