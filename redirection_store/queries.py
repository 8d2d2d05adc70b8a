"""
Topology lookups.

Composite-key and prefix queries over the four record types. All lookups run
inside session.required(), so they join the caller's unit when one is open.

By-key lookups follow one policy:
 - no match: warning, None
 - several matches: warning, the first by ascending surrogate id (creation order)
 - store failure: error with traceback, None (or [] for list lookups)

The last rule means a caller cannot tell "not found" from "query failed";
that is accepted here and should be kept in mind when reading results.
Staged writes are flushed before the query runs and a failing flush is not
a lookup failure: it propagates and the unit rolls back.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence, TypeVar

from .elements import InspectionPortElement, NetworkElement
from .models import InspectionHook, InspectionPort, Port, PortGroup
from .session import TopologySession

logger = logging.getLogger(__name__)

E = TypeVar("E", Port, PortGroup, InspectionPort, InspectionHook)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_INGRESS_EGRESS_JOINS = (
    "JOIN port ing ON ing.id = t.ingress_port_id "
    "JOIN port egr ON egr.id = t.egress_port_id"
)
_INSPECTED_JOIN = "JOIN port p ON p.id = t.inspected_port_id"
_INSPECTION_PORT_JOIN = "JOIN inspection_port ip ON ip.id = t.inspection_port_id"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_hook_where(
    *,
    inspected_id: str | None = None,
    inspection_port_id: str | None = None,
    match_inspected: bool = True,
    match_port: bool = True,
) -> tuple[str, str, list]:
    """Build JOIN clause, WHERE clause and params for hook queries keyed on related element ids."""
    joins: list[str] = []
    conditions: list[str] = []
    params: list = []

    if match_inspected:
        joins.append(_INSPECTED_JOIN)
        conditions.append("p.element_id = %s")
        params.append(inspected_id)

    if match_port:
        joins.append(_INSPECTION_PORT_JOIN)
        conditions.append("ip.element_id = %s")
        params.append(inspection_port_id)

    return " ".join(joins), " AND ".join(conditions) or "1 = 1", params


def _pick_first(results: list[E], label: str, *args: Any) -> E | None:
    if not results:
        logger.warning("No " + label, *args)
        return None
    if len(results) > 1:
        logger.warning("Multiple results! " + label, *args)
    return results[0]


class TopologyQueries:
    """Read-only lookups over a session."""

    def __init__(self, session: TopologySession):
        self.session = session

    def _find_one(
        self,
        model: type[E],
        where: str,
        params: Sequence[Any],
        label: str,
        *args: Any,
        joins: str = "",
    ) -> E | None:
        with self.session.required():
            self.session.flush()
            try:
                results = self.session.select(model, where, params, joins=joins)
            except Exception:
                logger.error("Finding " + label, *args, exc_info=True)
                return None
            return _pick_first(results, label, *args)

    def _find_all(
        self,
        model: type[E],
        where: str,
        params: Sequence[Any],
        label: str,
        *args: Any,
        joins: str = "",
    ) -> list[E]:
        with self.session.required():
            self.session.flush()
            try:
                return self.session.select(model, where, params, joins=joins)
            except Exception:
                logger.error("Finding " + label, *args, exc_info=True)
                return []

    # -----------------------------------------------------------------------
    # Ports
    # -----------------------------------------------------------------------

    def find_port_by_element_id(self, element_id: str | None) -> Port | None:
        return self._find_one(
            Port, "t.element_id = %s", (element_id,),
            "Port by element id %s", element_id,
        )

    def find_port_by_id(self, port_id: str | None) -> Port | None:
        """Direct load by surrogate id."""
        with self.session.required():
            self.session.flush()
            try:
                port = self.session.get(Port, port_id)
            except Exception:
                logger.error("Loading Port %s", port_id, exc_info=True)
                return None
            if port is None:
                logger.warning("No Port with id %s", port_id)
            return port

    def find_port_by_device_owner_id(self, device_owner_id: str | None) -> Port | None:
        return self._find_one(
            Port, "t.device_owner_id = %s", (device_owner_id,),
            "Port by device owner %s", device_owner_id,
        )

    def find_ports_by_device_owner_prefix(self, prefix: str | None) -> list[Port]:
        if prefix is None:
            logger.warning("Null device owner prefix; no ports matched")
            return []
        return self._find_all(
            Port, "t.device_owner_id LIKE %s ESCAPE '\\'", (escape_like(prefix) + "%",),
            "Ports with device owner prefix %s", prefix,
        )

    def list_ports(self) -> list[Port]:
        return self._find_all(Port, "1 = 1", (), "all Ports")

    def find_free_port_by_element_id(self, element_id: str | None) -> Port | None:
        """Oldest Port for the element id that no inspection hook inspects."""
        return self._find_one(
            Port,
            "t.element_id = %s AND NOT EXISTS "
            "(SELECT 1 FROM inspection_hook h WHERE h.inspected_port_id = t.id)",
            (element_id,),
            "free Port by element id %s", element_id,
        )

    def port_owned_by_hook(self, port: Port) -> bool:
        if port.inspection_hook_id is not None:
            return True
        with self.session.required():
            return self.session.count(InspectionHook, "t.inspected_port_id = %s", (port.id,)) > 0

    def port_in_use(self, port: Port) -> bool:
        """True when a hook owns the port or an inspection port routes through it."""
        if self.port_owned_by_hook(port):
            return True
        with self.session.required():
            inspection_ports = self.session.count(
                InspectionPort,
                "t.ingress_port_id = %s OR t.egress_port_id = %s",
                (port.id, port.id),
            )
        return inspection_ports > 0

    # -----------------------------------------------------------------------
    # Port groups
    # -----------------------------------------------------------------------

    def find_port_group(self, element_id: str | None, parent_id: str | None) -> PortGroup | None:
        return self._find_one(
            PortGroup, "t.element_id = %s AND t.parent_id = %s", (element_id, parent_id),
            "port group entity id '%s' and parentId '%s'", element_id, parent_id,
        )

    # -----------------------------------------------------------------------
    # Inspection ports
    # -----------------------------------------------------------------------

    def find_inspection_port_by_id(self, element_id: str | None) -> InspectionPort | None:
        """Lookup by the inspection port's external identifier."""
        return self._find_one(
            InspectionPort, "t.element_id = %s", (element_id,),
            "Inspection Port by element id %s", element_id,
        )

    def find_inspection_port_by_network_elements(
        self,
        ingress: NetworkElement | None,
        egress: NetworkElement | None,
    ) -> InspectionPort | None:
        ingress_id = ingress.element_id if ingress is not None else None
        egress_id = egress.element_id if egress is not None else None

        return self._find_one(
            InspectionPort,
            "ing.element_id = %s AND egr.element_id = %s",
            (ingress_id, egress_id),
            "Inspection Ports by ingress %s and egress %s", ingress_id, egress_id,
            joins=_INGRESS_EGRESS_JOINS,
        )

    def list_inspection_ports(self) -> list[InspectionPort]:
        return self._find_all(InspectionPort, "1 = 1", (), "all Inspection Ports")

    # -----------------------------------------------------------------------
    # Inspection hooks
    # -----------------------------------------------------------------------

    def find_inspection_hook_by_id(self, hook_id: str | None) -> InspectionHook | None:
        with self.session.required():
            self.session.flush()
            try:
                hook = self.session.get(InspectionHook, hook_id)
            except Exception:
                logger.error("Loading Inspection Hook %s", hook_id, exc_info=True)
                return None
            if hook is None:
                logger.warning("No Inspection Hook with id %s", hook_id)
            return hook

    def find_inspection_hook(
        self,
        inspected_element_id: str | None,
        inspection_port_element_id: str | None,
    ) -> InspectionHook | None:
        """Lookup by (inspected port element id, inspection port element id)."""
        joins, where, params = _build_hook_where(
            inspected_id=inspected_element_id,
            inspection_port_id=inspection_port_element_id,
        )
        return self._find_one(
            InspectionHook, where, params,
            "Inspection hooks by inspected %s and port %s",
            inspected_element_id, inspection_port_element_id,
            joins=joins,
        )

    def find_inspection_hook_by_inspected_and_port(
        self,
        inspected: NetworkElement | None,
        element: InspectionPortElement | None,
    ) -> InspectionHook | None:
        """Resolve the inspection port by its ingress/egress pair, then find the hook."""
        ingress = element.ingress_port if element is not None else None
        egress = element.egress_port if element is not None else None
        inspected_id = inspected.element_id if inspected is not None else None

        with self.session.required():
            inspection_port = self.find_inspection_port_by_network_elements(ingress, egress)
            port_id = inspection_port.element_id if inspection_port is not None else None
            return self.find_inspection_hook(inspected_id, port_id)

    def find_inspection_hook_on_inspection_port(
        self,
        inspected_element_id: str | None,
        inspection_port: InspectionPort,
    ) -> InspectionHook | None:
        """Lookup by inspected port element id on one stored inspection port."""
        return self._find_one(
            InspectionHook,
            "p.element_id = %s AND t.inspection_port_id = %s",
            (inspected_element_id, inspection_port.id),
            "Inspection hooks by inspected %s on inspection port %s",
            inspected_element_id, inspection_port.id,
            joins=_INSPECTED_JOIN,
        )

    def find_inspection_hooks_by_inspected(self, inspected_element_id: str | None) -> list[InspectionHook]:
        joins, where, params = _build_hook_where(inspected_id=inspected_element_id, match_port=False)
        return self._find_all(
            InspectionHook, where, params,
            "Inspection hooks by inspected %s", inspected_element_id,
            joins=joins,
        )

    def find_inspection_hooks_by_inspection_port(
        self,
        inspection_port_element_id: str | None,
    ) -> list[InspectionHook]:
        joins, where, params = _build_hook_where(
            inspection_port_id=inspection_port_element_id, match_inspected=False
        )
        return self._find_all(
            InspectionHook, where, params,
            "Inspection hooks by inspection port %s", inspection_port_element_id,
            joins=joins,
        )

    def list_inspection_hooks(self) -> list[InspectionHook]:
        return self._find_all(InspectionHook, "1 = 1", (), "all Inspection Hooks")
