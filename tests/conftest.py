from __future__ import annotations

import pytest

from redirection_store import Database, InspectionPortDescriptor, PortElement, RedirectionStore, init_schema


@pytest.fixture
def db():
    database = Database.sqlite(":memory:")
    init_schema(database)
    yield database
    database.close()


@pytest.fixture
def store(db):
    return RedirectionStore(db)


@pytest.fixture
def count_rows(db):
    def _count(table: str) -> int:
        return db.fetchone(f"SELECT COUNT(*) FROM {table}")[0]

    return _count


@pytest.fixture
def inspection_port_element():
    return InspectionPortDescriptor(
        ingress_port=PortElement("ins-in", parent_id="sva-1", mac_addresses=("fa:16:3e:00:00:01",)),
        egress_port=PortElement("ins-out", parent_id="sva-1", mac_addresses=("fa:16:3e:00:00:02",)),
        element_id="ip-1",
    )


@pytest.fixture
def inspected_element():
    return PortElement(
        "vm-port-1",
        parent_id="vm-1",
        mac_addresses=("fa:16:3e:aa:bb:cc",),
        port_ips=("10.0.0.5",),
    )
