"""
Precondition checks.

Every check logs and raises InvalidArgumentError before any store access.
These failures are the caller's to fix and are never retried.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

logger = logging.getLogger(__name__)


class InvalidArgumentError(ValueError):
    """A required argument was missing or inconsistent."""


def _fail(msg: str) -> None:
    logger.error(msg)
    raise InvalidArgumentError(msg)


def require_inspection_port_element(element: Any) -> None:
    if element is None:
        _fail("null passed for Inspection Port argument!")


def require_network_element(element: Any, msg: str | None = None) -> None:
    if element is None:
        _fail(msg or "null passed for Network Element argument!")


def require_inspected_ports(inspected_ports: Sequence[Any] | None) -> None:
    if inspected_ports is None:
        _fail("null passed for inspected ports argument!")


def require_inspection_port_entity(entity: Any, element: Any) -> None:
    """Fail when no stored inspection port matches the caller's descriptor."""
    if entity is None:
        _fail(
            "Cannot find inspection port for inspection hook id: "
            f"{getattr(element, 'element_id', None)}; "
            f"ingress: {getattr(element, 'ingress_port', None)}; "
            f"egress: {getattr(element, 'egress_port', None)}"
        )


def require_id_match(entity_id: str | None, given_id: str) -> None:
    """Fail when the id inside an entity differs from the id the caller addressed."""
    if given_id != entity_id:
        _fail(f"The ID {entity_id} specified in the entity does not match the id specified by the user")


def require_element_and_id(element: Any, type_name: str, id_attr: str = "element_id") -> None:
    if element is None or getattr(element, id_attr, None) is None:
        _fail(f"null passed for {type_name} !")


def require_port_group_members(members: Sequence[Any] | None) -> None:
    """A group takes its parent from the first member, so it needs at least one."""
    require_inspected_ports(members)
    if len(members) == 0:
        _fail("empty list passed for inspected ports argument!")
