"""
Removal of inspection hooks and inspection ports.

A hook owns its inspected Port, so removing the hook removes that Port as
well. Removing an inspection port first removes every hook attached to it
(restrict-with-explicit-cleanup); its ingress and egress Ports are kept since
other records may still route through them.

Removing something that does not exist is a logged no-op.
"""

from __future__ import annotations

import logging

from .models import InspectionHook, InspectionPort, Port
from .queries import TopologyQueries
from .session import TopologySession

logger = logging.getLogger(__name__)


class TopologyDeleter:
    def __init__(self, session: TopologySession, queries: TopologyQueries | None = None):
        self.session = session
        self.queries = queries or TopologyQueries(session)

    def remove_inspection_hook(self, hook_id: str | None) -> bool:
        """
        Delete a hook and the inspected Port it owns, atomically.

        Returns True when a hook was removed.
        """
        if hook_id is None:
            logger.warning("Attempt to remove Inspection Hook with null id")
            return False

        with self.session.required():
            hook = self.session.get(InspectionHook, hook_id)
            if hook is None:
                logger.warning("Attempt to remove nonexistent Inspection Hook for id %s", hook_id)
                return False

            inspected_port = self.session.get(Port, hook.inspected_port_id)
            if inspected_port is not None:
                inspected_port.inspection_hook_id = None
            hook.inspected_port_id = None

            inspection_port = self.session.get(InspectionPort, hook.inspection_port_id)
            if inspection_port is not None and hook.id in inspection_port.hook_ids:
                inspection_port.hook_ids.remove(hook.id)

            # Detach is flushed before the deletes so no row points at the port
            self.session.flush()
            if inspected_port is not None:
                self.session.delete(inspected_port)
            self.session.delete_where(InspectionHook, "t.id = %s", (hook_id,))

            logger.info(
                "Removed Inspection Hook %s and inspected Port %s",
                hook_id,
                inspected_port.element_id if inspected_port is not None else None,
            )
            return True

    def remove_inspection_port(self, inspection_port_id: str | None) -> bool:
        """
        Delete the inspection port(s) with this external id and their hooks.

        Returns True when at least one inspection port was removed.
        """
        if inspection_port_id is None:
            logger.warning("Attempt to remove Inspection Port with null id")
            return False

        with self.session.required():
            for hook in self.queries.find_inspection_hooks_by_inspection_port(inspection_port_id):
                self.remove_inspection_hook(hook.id)

            deleted = self.session.delete_where(InspectionPort, "t.element_id = %s", (inspection_port_id,))
            if not deleted:
                logger.warning("Attempt to remove nonexistent Inspection Port for id %s", inspection_port_id)
                return False

            logger.info("Removed %d Inspection Port(s) for id %s", deleted, inspection_port_id)
            return True
