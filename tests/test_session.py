from __future__ import annotations

import pytest

from redirection_store import InspectionPort, Port, PortGroup, TopologySession


def test_nested_failure_marks_unit_rollback_only(store, count_rows):
    with store.session.required():
        store.session.add(Port(element_id="p1"))
        store.session.flush()
        try:
            with store.session.required():
                raise RuntimeError("inner")
        except RuntimeError:
            pass

    assert count_rows("port") == 0


def test_nested_scopes_commit_once(store, count_rows, monkeypatch):
    commits = []
    monkeypatch.setattr(store.db, "commit", lambda: commits.append(1))

    with store.session.required():
        with store.session.required():
            store.session.add(Port(element_id="p1"))
        assert store.session.in_unit

    assert commits == [1]
    assert not store.session.in_unit


def test_identity_map_cleared_between_units(store):
    with store.session.required():
        port = store.session.add(Port(element_id="p1"))

    with store.session.required():
        reloaded = store.session.get(Port, port.id)
        assert reloaded is not port
        assert reloaded is store.session.get(Port, port.id)
        assert reloaded in store.session


def test_get_missing_row_is_none(store):
    with store.session.required():
        assert store.session.get(Port, "01MISSING") is None
        assert store.session.get(Port, None) is None


def test_add_rejects_second_instance_with_same_id(store):
    with pytest.raises(ValueError):
        with store.session.required():
            store.session.add(Port(element_id="p1", id="01A"))
            store.session.add(Port(element_id="p2", id="01A"))


def test_flush_writes_changes_to_loaded_entities(store):
    with store.session.required():
        port = store.session.add(Port(element_id="p1", mac_addresses=["aa"]))

    with store.session.required():
        loaded = store.session.get(Port, port.id)
        assert store.session.is_persistent(loaded)
        loaded.mac_addresses.append("bb")

    with store.session.required():
        assert store.session.get(Port, port.id).mac_addresses == ["aa", "bb"]


def test_flush_orders_inserts_by_foreign_key(store, count_rows):
    with store.session.required():
        ingress = Port(element_id="in")
        group = PortGroup(parent_id="net")
        ingress.port_group_id = group.id
        # staged in reverse dependency order
        store.session.add(InspectionPort(ingress_port_id=ingress.id, egress_port_id=ingress.id))
        store.session.add(ingress)
        store.session.add(group)

    assert count_rows("inspection_port") == 1
    assert count_rows("port_group") == 1


def test_delete_where_evicts_matches(store, count_rows):
    with store.session.required():
        store.session.add(Port(element_id="p1", id="01A"))
        store.session.add(Port(element_id="p1", id="01B"))
        store.session.add(Port(element_id="p2", id="01C"))

    with store.session.required():
        loaded = store.session.get(Port, "01A")
        assert store.session.delete_where(Port, "t.element_id = %s", ("p1",)) == 2
        assert loaded not in store.session
        assert store.session.delete_where(Port, "t.element_id = %s", ("p1",)) == 0

    assert count_rows("port") == 1


def test_session_closes_database(db):
    closed = []
    db.close = lambda: closed.append(True)

    with TopologySession(db):
        pass

    assert closed == [True]
