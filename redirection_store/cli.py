"""
Operator CLI for the redirection store.

Usage:
    redirection-store init-db
    redirection-store ports --owner vm-
    redirection-store inspection-ports
    redirection-store hooks
    redirection-store add-hook --inspected p1 --ingress in1 --egress out1 --tag 100
    redirection-store remove-hook 01J...
    redirection-store remove-inspection-port ip-1
    redirection-store capabilities

    redirection-store --sqlite ./topology.db hooks   # ignore REDIRECTION_DB_BACKEND
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import SUPPORTS_PORT_GROUP_VALUE, StoreSettings, get_settings
from .elements import InspectionPortDescriptor, PortElement
from .models import FailurePolicyType, InspectionPort, Port, TagEncapsulationType
from .service import RedirectionStore
from .validation import InvalidArgumentError

logger = logging.getLogger(__name__)

console = Console()


def configure_logging(level: str) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redirection-store",
        description="Inspect and maintain the persisted redirection topology",
    )
    parser.add_argument("--sqlite", metavar="PATH", help="Use an SQLite database file instead of the configured backend")
    parser.add_argument("--log-level", help="Logging level (default: REDIRECTION_LOG_LEVEL)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and indexes")

    ports = sub.add_parser("ports", help="List ports")
    ports.add_argument("--owner", metavar="PREFIX", help="Only ports whose device owner starts with PREFIX")

    sub.add_parser("inspection-ports", help="List inspection ports")
    sub.add_parser("hooks", help="List inspection hooks")

    add_hook = sub.add_parser("add-hook", help="Redirect a port through an inspection port")
    add_hook.add_argument("--inspected", required=True, help="Element id of the inspected port")
    add_hook.add_argument("--inspected-parent", help="Parent (device owner) of the inspected port")
    add_hook.add_argument("--mac", action="append", default=[], help="MAC address of the inspected port (repeatable)")
    add_hook.add_argument("--ip", action="append", default=[], help="IP address of the inspected port (repeatable)")
    add_hook.add_argument("--ingress", required=True, help="Element id of the inspection ingress port")
    add_hook.add_argument("--egress", help="Element id of the inspection egress port (default: same as ingress)")
    add_hook.add_argument("--inspection-port", help="Element id of the inspection port")
    add_hook.add_argument("--tag", type=int)
    add_hook.add_argument("--order", type=int)
    add_hook.add_argument(
        "--encapsulation",
        choices=[t.value for t in TagEncapsulationType],
        default=TagEncapsulationType.VLAN.value,
    )
    add_hook.add_argument(
        "--failure-policy",
        choices=[t.value for t in FailurePolicyType],
        default=FailurePolicyType.NA.value,
    )

    remove_hook = sub.add_parser("remove-hook", help="Remove a hook and its inspected port")
    remove_hook.add_argument("hook_id")

    remove_port = sub.add_parser("remove-inspection-port", help="Remove an inspection port and its hooks")
    remove_port.add_argument("element_id")

    sub.add_parser("capabilities", help="Show advertised capabilities")

    return parser


def _settings_for(args: argparse.Namespace) -> StoreSettings:
    if args.sqlite:
        return StoreSettings(redirection_db_backend="sqlite", redirection_sqlite_path=args.sqlite)
    return get_settings()


def show_ports(store: RedirectionStore, owner_prefix: str | None) -> None:
    if owner_prefix is not None:
        ports = store.queries.find_ports_by_device_owner_prefix(owner_prefix)
    else:
        ports = store.queries.list_ports()

    table = Table(title=f"Ports ({len(ports)})")
    for column in ("ID", "Element", "Device owner", "MACs", "IPs", "Group", "Hook"):
        table.add_column(column)
    for port in ports:
        table.add_row(
            port.id,
            port.element_id or "-",
            port.device_owner_id or "-",
            ", ".join(port.mac_addresses),
            ", ".join(port.port_ips),
            port.port_group_id or "-",
            port.inspection_hook_id or "-",
        )
    console.print(table)


def show_inspection_ports(store: RedirectionStore) -> None:
    with store.session.required():
        inspection_ports = store.queries.list_inspection_ports()
        table = Table(title=f"Inspection ports ({len(inspection_ports)})")
        for column in ("Element", "Ingress", "Egress", "Hooks"):
            table.add_column(column)
        for ip in inspection_ports:
            ingress = store.session.get(Port, ip.ingress_port_id)
            egress = store.session.get(Port, ip.egress_port_id)
            table.add_row(
                ip.element_id,
                ingress.element_id if ingress else "-",
                egress.element_id if egress else "-",
                str(len(ip.hook_ids)),
            )
    console.print(table)


def show_hooks(store: RedirectionStore) -> None:
    with store.session.required():
        hooks = store.queries.list_inspection_hooks()
        table = Table(title=f"Inspection hooks ({len(hooks)})")
        for column in ("Hook", "Inspected", "Inspection port", "Order", "Tag", "Encapsulation", "Failure policy"):
            table.add_column(column)
        for hook in hooks:
            inspected = store.session.get(Port, hook.inspected_port_id)
            inspection_port = store.session.get(InspectionPort, hook.inspection_port_id)
            table.add_row(
                hook.id,
                inspected.element_id if inspected else "-",
                inspection_port.element_id if inspection_port else "-",
                "-" if hook.order is None else str(hook.order),
                "-" if hook.tag is None else str(hook.tag),
                hook.enc_type.value,
                hook.failure_policy_type.value,
            )
    console.print(table)


def add_hook(store: RedirectionStore, args: argparse.Namespace) -> None:
    inspected = PortElement(
        element_id=args.inspected,
        parent_id=args.inspected_parent,
        mac_addresses=tuple(args.mac),
        port_ips=tuple(args.ip),
    )
    inspection_port = InspectionPortDescriptor(
        ingress_port=PortElement(args.ingress),
        egress_port=PortElement(args.egress or args.ingress),
        element_id=args.inspection_port,
    )
    hook = store.install_inspection_hook(
        inspected,
        inspection_port,
        tag=args.tag,
        enc_type=args.encapsulation,
        order=args.order,
        failure_policy_type=args.failure_policy,
    )
    console.print(f"[green]Inspection hook:[/green] {hook.id}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = _settings_for(args)
    configure_logging(args.log_level or settings.redirection_log_level)

    if args.command == "capabilities":
        console.print(f"supportsPortGroup{SUPPORTS_PORT_GROUP_VALUE}")
        return 0

    try:
        store = RedirectionStore.from_settings(settings)
    except Exception as exc:
        console.print(f"[red]Cannot open the store: {exc}[/red]")
        return 1

    with store:
        try:
            if args.command == "init-db":
                store.init_schema()
                console.print("[green]Schema ready[/green]")
            elif args.command == "ports":
                show_ports(store, args.owner)
            elif args.command == "inspection-ports":
                show_inspection_ports(store)
            elif args.command == "hooks":
                show_hooks(store)
            elif args.command == "add-hook":
                add_hook(store, args)
            elif args.command == "remove-hook":
                if not store.remove_inspection_hook(args.hook_id):
                    console.print(f"[yellow]No inspection hook {args.hook_id}[/yellow]")
                    return 1
                console.print(f"[green]Removed inspection hook {args.hook_id}[/green]")
            elif args.command == "remove-inspection-port":
                if not store.remove_inspection_port(args.element_id):
                    console.print(f"[yellow]No inspection port {args.element_id}[/yellow]")
                    return 1
                console.print(f"[green]Removed inspection port {args.element_id}[/green]")
        except InvalidArgumentError as exc:
            console.print(f"[red]Invalid input: {exc}[/red]")
            return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
