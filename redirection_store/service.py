"""
RedirectionStore - the entry point for callers.

Wires one session to the lookup, reconciliation, builder and deletion
engines, and adds the controller-facing operations built from them.

Usage:
    with RedirectionStore.from_settings() as store:
        hook = store.install_inspection_hook(inspected, inspection_port, tag=100)
        store.remove_inspection_hook(hook.id)
"""

from __future__ import annotations

import logging
from typing import Sequence

from .builder import TopologyBuilder
from .config import StoreSettings, supports_port_group
from .db import Database, connect
from .deletion import TopologyDeleter
from .elements import InspectionPortElement, NetworkElement
from .models import (
    FailurePolicyType,
    InspectionHook,
    InspectionPort,
    Port,
    PortGroup,
    TagEncapsulationType,
)
from .queries import TopologyQueries
from .reconcile import PortReconciler
from .schema import init_schema
from .session import TopologySession
from .validation import (
    require_element_and_id,
    require_id_match,
    require_inspection_port_element,
    require_inspection_port_entity,
)

logger = logging.getLogger(__name__)


class RedirectionStore:
    """Persisted redirection topology over one database connection."""

    def __init__(self, db: Database):
        self.db = db
        self.session = TopologySession(db)
        self.queries = TopologyQueries(self.session)
        self.reconciler = PortReconciler(self.session, self.queries)
        self.builder = TopologyBuilder(self.session, self.queries, self.reconciler)
        self.deleter = TopologyDeleter(self.session, self.queries)

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None, *, create_schema: bool = False) -> RedirectionStore:
        store = cls(connect(settings))
        if create_schema:
            store.init_schema()
        return store

    def init_schema(self) -> None:
        init_schema(self.db)

    @staticmethod
    def supports_port_group() -> bool:
        return supports_port_group()

    # -----------------------------------------------------------------------
    # Engines
    # -----------------------------------------------------------------------

    def reconcile_port(self, element: NetworkElement) -> Port:
        return self.reconciler.reconcile_port(element)

    def reconcile_ports(self, elements: Sequence[NetworkElement] | None) -> set[Port]:
        return self.reconciler.reconcile_ports(elements)

    def build_inspection_port(self, element: InspectionPortElement | None) -> InspectionPort:
        return self.builder.build_inspection_port(element)

    def build_port_group(self, members: Sequence[NetworkElement] | None, element_id: str | None = None) -> PortGroup:
        return self.builder.build_port_group(members, element_id)

    def build_inspection_hook(
        self,
        inspected: NetworkElement | None,
        inspection_port: InspectionPortElement | None,
        tag: int | None = None,
        enc_type: TagEncapsulationType | str | None = None,
        order: int | None = None,
        failure_policy_type: FailurePolicyType | str | None = None,
    ) -> InspectionHook:
        return self.builder.build_inspection_hook(
            inspected, inspection_port, tag, enc_type, order, failure_policy_type
        )

    def remove_inspection_hook(self, hook_id: str | None) -> bool:
        return self.deleter.remove_inspection_hook(hook_id)

    def remove_inspection_port(self, inspection_port_id: str | None) -> bool:
        return self.deleter.remove_inspection_port(inspection_port_id)

    # -----------------------------------------------------------------------
    # Controller-facing operations
    # -----------------------------------------------------------------------

    def register_inspection_port(self, element: InspectionPortElement | None) -> InspectionPort:
        """Return the stored inspection port for the ingress/egress pair, creating it if needed."""
        require_inspection_port_element(element)

        with self.session.required():
            inspection_port = self.queries.find_inspection_port_by_network_elements(
                element.ingress_port, element.egress_port
            )
            if inspection_port is None:
                inspection_port = self.builder.build_inspection_port(element)
            return inspection_port

    def get_inspection_port(self, element: InspectionPortElement | None) -> InspectionPort | None:
        """Lookup by the descriptor's element id, falling back to its ingress/egress pair."""
        if element is None:
            logger.warning("Attempt to find an Inspection Port for null element")
            return None

        with self.session.required():
            inspection_port = None
            if element.element_id is not None:
                inspection_port = self.queries.find_inspection_port_by_id(element.element_id)
            if inspection_port is None:
                inspection_port = self.queries.find_inspection_port_by_network_elements(
                    element.ingress_port, element.egress_port
                )
            return inspection_port

    def install_inspection_hook(
        self,
        inspected: NetworkElement | None,
        inspection_port: InspectionPortElement | None,
        tag: int | None = None,
        enc_type: TagEncapsulationType | str | None = None,
        order: int | None = None,
        failure_policy_type: FailurePolicyType | str | None = None,
    ) -> InspectionHook:
        """
        Persist a hook for the pair, or return the one already stored.

        The inspected element must carry an id, since that is how hooks are
        found again. The inspection port is resolved as in get_inspection_port
        and only built when nothing matches, so the duplicate check and the new
        hook always refer to the same inspection port.
        """
        require_element_and_id(inspected, "Inspected port")
        require_inspection_port_element(inspection_port)

        with self.session.required():
            resolved = self.get_inspection_port(inspection_port)
            if resolved is None:
                resolved = self.builder.build_inspection_port(inspection_port)
            else:
                existing = self.queries.find_inspection_hook_on_inspection_port(inspected.element_id, resolved)
                if existing is not None:
                    logger.warning(
                        "Found existing inspection hook %s (inspected %s; inspection port %s)",
                        existing.id,
                        inspected.element_id,
                        resolved.element_id,
                    )
                    return existing

            return self.builder.attach_inspection_hook(
                inspected, resolved, tag, enc_type, order, failure_policy_type
            )

    def update_inspection_hook(
        self,
        hook_id: str,
        changes: InspectionHook,
        inspection_port: InspectionPortElement | None = None,
    ) -> InspectionHook | None:
        """
        Copy the policy fields of `changes` onto the stored hook `hook_id`.

        `changes.id` must equal `hook_id`. Returns None when no such hook exists.
        When `inspection_port` is given, the hook is moved to the stored
        inspection port it resolves to; a descriptor that matches no stored
        inspection port is rejected.
        """
        require_element_and_id(changes, "Inspection hook", id_attr="id")
        require_id_match(changes.id, hook_id)

        with self.session.required():
            hook = self.queries.find_inspection_hook_by_id(hook_id)
            if hook is None:
                return None

            if inspection_port is not None:
                target = self.get_inspection_port(inspection_port)
                require_inspection_port_entity(target, inspection_port)
                if target.id != hook.inspection_port_id:
                    current = self.session.get(InspectionPort, hook.inspection_port_id)
                    if current is not None and hook.id in current.hook_ids:
                        current.hook_ids.remove(hook.id)
                    target.hook_ids.append(hook.id)
                    hook.inspection_port_id = target.id

            hook.tag = changes.tag
            hook.order = changes.order
            hook.enc_type = TagEncapsulationType(changes.enc_type or TagEncapsulationType.VLAN)
            hook.failure_policy_type = FailurePolicyType(changes.failure_policy_type or FailurePolicyType.NA)
            return hook

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> RedirectionStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
