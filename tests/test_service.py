from __future__ import annotations

import dataclasses

import pytest

from redirection_store import (
    FailurePolicyType,
    InspectionHook,
    InspectionPortDescriptor,
    InvalidArgumentError,
    PortElement,
    RedirectionStore,
    TagEncapsulationType,
)


def test_install_hook_is_idempotent(store, inspected_element, inspection_port_element, count_rows):
    first = store.install_inspection_hook(inspected_element, inspection_port_element, tag=10)
    second = store.install_inspection_hook(inspected_element, inspection_port_element, tag=99)

    assert second.id == first.id
    assert second.tag == 10
    assert count_rows("inspection_hook") == 1


def test_install_hook_needs_identified_inspected_port(store, inspection_port_element):
    with pytest.raises(InvalidArgumentError, match="Inspected port"):
        store.install_inspection_hook(PortElement(None), inspection_port_element)

    with pytest.raises(InvalidArgumentError):
        store.install_inspection_hook(PortElement("p1"), None)


def test_update_hook_copies_policy(store, inspected_element, inspection_port_element):
    hook = store.install_inspection_hook(inspected_element, inspection_port_element)
    changes = dataclasses.replace(
        hook, tag=7, order=2, enc_type=TagEncapsulationType.MPLS, failure_policy_type=FailurePolicyType.FAIL_OPEN
    )

    updated = store.update_inspection_hook(hook.id, changes)

    assert updated.tag == 7
    reloaded = store.queries.find_inspection_hook_by_id(hook.id)
    assert (reloaded.tag, reloaded.order, reloaded.enc_type, reloaded.failure_policy_type) == (
        7,
        2,
        TagEncapsulationType.MPLS,
        FailurePolicyType.FAIL_OPEN,
    )
    assert reloaded.inspected_port_id == hook.inspected_port_id


def test_update_hook_rejects_id_mismatch(store):
    with pytest.raises(InvalidArgumentError, match="does not match"):
        store.update_inspection_hook("01A", InspectionHook(id="01B"))


def test_update_missing_hook_returns_none(store):
    assert store.update_inspection_hook("01A", InspectionHook(id="01A")) is None


def test_register_inspection_port_reuses_pair(store, count_rows):
    element = InspectionPortDescriptor(PortElement("in"), PortElement("out"))

    first = store.register_inspection_port(element)
    second = store.register_inspection_port(element)

    assert second.id == first.id
    assert count_rows("inspection_port") == 1


def test_get_inspection_port_falls_back_to_pair(store, inspection_port_element):
    built = store.build_inspection_port(inspection_port_element)

    by_id = store.get_inspection_port(inspection_port_element)
    by_pair = store.get_inspection_port(
        InspectionPortDescriptor(PortElement("ins-in"), PortElement("ins-out"), element_id="unknown")
    )

    assert by_id.id == built.id
    assert by_pair.id == built.id
    assert store.get_inspection_port(None) is None


def test_supports_port_group_is_off():
    assert RedirectionStore.supports_port_group() is False


def test_store_from_sqlite_settings(tmp_path):
    from redirection_store import StoreSettings

    settings = StoreSettings(
        _env_file=None,
        redirection_db_backend="sqlite",
        redirection_sqlite_path=str(tmp_path / "topology.db"),
    )

    with RedirectionStore.from_settings(settings, create_schema=True) as store:
        store.reconcile_port(PortElement("p1"))

    with RedirectionStore.from_settings(settings) as store:
        assert store.queries.find_port_by_element_id("p1") is not None


def test_install_hook_is_idempotent_when_pairs_are_shared(store, count_rows):
    store.build_inspection_port(InspectionPortDescriptor(PortElement("in"), PortElement("out"), element_id="ip-a"))
    element = InspectionPortDescriptor(PortElement("in"), PortElement("out"), element_id="ip-b")
    ip_b = store.build_inspection_port(element)

    first = store.install_inspection_hook(PortElement("vm"), element)
    second = store.install_inspection_hook(PortElement("vm"), element)

    assert second.id == first.id
    assert first.inspection_port_id == ip_b.id
    assert count_rows("inspection_hook") == 1
    assert count_rows("inspection_port") == 2


def test_update_hook_moves_to_other_inspection_port(store, inspected_element, inspection_port_element):
    hook = store.install_inspection_hook(inspected_element, inspection_port_element)
    other = InspectionPortDescriptor(PortElement("o-in"), PortElement("o-out"), element_id="ip-2")
    target = store.build_inspection_port(other)

    store.update_inspection_hook(hook.id, dataclasses.replace(hook, tag=5), other)

    reloaded = store.queries.find_inspection_hook_by_id(hook.id)
    assert reloaded.inspection_port_id == target.id
    assert reloaded.tag == 5
    assert store.queries.find_inspection_port_by_id("ip-1").hook_ids == []
    assert store.queries.find_inspection_port_by_id("ip-2").hook_ids == [hook.id]


def test_update_hook_rejects_unknown_inspection_port(store, inspected_element, inspection_port_element):
    hook = store.install_inspection_hook(inspected_element, inspection_port_element, tag=1)
    unknown = InspectionPortDescriptor(PortElement("no-in"), PortElement("no-out"), element_id="nope")

    with pytest.raises(InvalidArgumentError, match="Cannot find inspection port"):
        store.update_inspection_hook(hook.id, dataclasses.replace(hook, tag=9), unknown)

    reloaded = store.queries.find_inspection_hook_by_id(hook.id)
    assert reloaded.tag == 1
    assert reloaded.inspection_port_id == hook.inspection_port_id
