"""
Assembly of inspection ports, port groups and inspection hooks.

Builders stage new records in the current unit and link them to each other by
id. They never write directly; the enclosing unit flushes everything at
commit, or drops it on rollback.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .elements import InspectionPortElement, NetworkElement
from .models import (
    FailurePolicyType,
    InspectionHook,
    InspectionPort,
    PortGroup,
    TagEncapsulationType,
)
from .queries import TopologyQueries
from .reconcile import PortReconciler, make_port
from .session import TopologySession
from .validation import (
    require_inspection_port_element,
    require_network_element,
    require_port_group_members,
)

logger = logging.getLogger(__name__)


class TopologyBuilder:
    """Builds linked topology records from caller-supplied element descriptions."""

    def __init__(
        self,
        session: TopologySession,
        queries: TopologyQueries | None = None,
        reconciler: PortReconciler | None = None,
    ):
        self.session = session
        self.queries = queries or TopologyQueries(session)
        self.reconciler = reconciler or PortReconciler(session, self.queries)

    def build_inspection_port(self, element: InspectionPortElement | None) -> InspectionPort:
        """
        Find or build the inspection port for a descriptor.

        A stored inspection port with the descriptor's element id is reused.
        Otherwise ingress and egress are reconciled separately, and when they
        name the same element the ingress Port serves both roles. A Port that
        an inspection hook owns is never reused for either role.
        """
        require_inspection_port_element(element)
        ingress = element.ingress_port
        require_network_element(ingress, "Null ingress element.")
        egress = element.egress_port
        require_network_element(egress, "Null egress element.")

        with self.session.required():
            if element.element_id is not None:
                existing = self.queries.find_inspection_port_by_id(element.element_id)
                if existing is not None:
                    return existing

            ingress_port = self.reconciler.reconcile_free_port(ingress)
            if ingress_port.element_id is not None and ingress_port.element_id == egress.element_id:
                egress_port = ingress_port
            else:
                egress_port = self.reconciler.reconcile_free_port(egress)

            inspection_port = InspectionPort(
                ingress_port_id=ingress_port.id,
                egress_port_id=egress_port.id,
            )
            if element.element_id is not None:
                inspection_port.element_id = element.element_id

            return self.session.add(inspection_port)

    def build_port_group(
        self,
        members: Sequence[NetworkElement] | None,
        element_id: str | None = None,
    ) -> PortGroup:
        """
        Build a port group over the given members.

        All members are expected to share one parent; the group takes the
        parent of the first member without checking the others. Members never
        reuse a Port that an inspection hook owns.
        """
        require_port_group_members(members)

        with self.session.required():
            group = self.session.add(PortGroup(element_id=element_id, parent_id=members[0].parent_id))

            ports = sorted(self.reconciler.reconcile_free_ports(members), key=lambda p: p.id)
            for port in ports:
                port.port_group_id = group.id
            group.port_ids = [port.id for port in ports]

            return group

    def build_inspection_hook(
        self,
        inspected: NetworkElement | None,
        inspection_port_element: InspectionPortElement | None,
        tag: int | None = None,
        enc_type: TagEncapsulationType | str | None = None,
        order: int | None = None,
        failure_policy_type: FailurePolicyType | str | None = None,
    ) -> InspectionHook:
        """
        Build a hook redirecting `inspected` through an inspection port.

        The inspection port is found or built from its descriptor, then the
        hook is attached to it as in attach_inspection_hook.
        """
        require_network_element(inspected, "Null inspected port!")

        with self.session.required():
            inspection_port = self.build_inspection_port(inspection_port_element)
            return self.attach_inspection_hook(
                inspected, inspection_port, tag, enc_type, order, failure_policy_type
            )

    def attach_inspection_hook(
        self,
        inspected: NetworkElement | None,
        inspection_port: InspectionPort,
        tag: int | None = None,
        enc_type: TagEncapsulationType | str | None = None,
        order: int | None = None,
        failure_policy_type: FailurePolicyType | str | None = None,
    ) -> InspectionHook:
        """
        Build a hook redirecting `inspected` through a resolved inspection port.

        Null encapsulation defaults to VLAN and null failure policy to NA. The
        inspected Port becomes the hook's own: when the reconciled Port is
        already bound to another hook or routes an inspection port, a separate
        Port is created for this hook.
        """
        require_network_element(inspected, "Null inspected port!")

        with self.session.required():
            enc_type = TagEncapsulationType(enc_type if enc_type is not None else TagEncapsulationType.VLAN)
            failure_policy_type = FailurePolicyType(
                failure_policy_type if failure_policy_type is not None else FailurePolicyType.NA
            )

            inspected_port = self.reconciler.reconcile_port(inspected)
            if self.queries.port_in_use(inspected_port):
                logger.warning(
                    "Port %s for element %s is already in use; creating a dedicated inspected port",
                    inspected_port.id,
                    inspected.element_id,
                )
                inspected_port = self.session.add(make_port(inspected))

            hook = InspectionHook(
                inspected_port_id=inspected_port.id,
                inspection_port_id=inspection_port.id,
                order=order,
                tag=tag,
                enc_type=enc_type,
                failure_policy_type=failure_policy_type,
            )

            inspection_port.hook_ids.append(hook.id)
            inspected_port.inspection_hook_id = hook.id

            return self.session.add(hook)
