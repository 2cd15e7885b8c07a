"""
Tests for the tracked SLO list and the registry file.
"""

from unittest.mock import MagicMock

import pytest

from slo_r.core import ConfigurationException
from slo_r.slo.application import SloRegistry
from slo_r.slo.domain import RegistryConfig
from slo_r.slo.infrastructure import RegistryConfigManager

from conftest import FakeDocumentStore, make_slo


@pytest.mark.asyncio
async def test_load_builds_slos_of_every_entity():
    store = FakeDocumentStore({
        "g1": [{"documentId": "a", "indicator": "error_budget", "appName": "shop"}],
        "g2": [{"documentId": "b", "indicator": "latency"}, {"documentId": "c"}],
    })
    registry = SloRegistry(store, "nr1-csg-slo-r")
    listener = MagicMock()
    registry.subscribe(listener)

    slos = await registry.load(["g1", "g2"])

    # "c" has no indicator and is skipped
    assert [slo.document.key for slo in slos] == [("g1", "a"), ("g2", "b")]
    assert slos[0].document.model_extra["appName"] == "shop"
    listener.assert_called_once_with(slos)


@pytest.mark.asyncio
async def test_registry_feeds_controller(controller, error_budget_service):
    store = FakeDocumentStore({"g1": [{"documentId": "a", "indicator": "error_budget"}]})
    registry = SloRegistry(store, "nr1-csg-slo-r")
    registry.subscribe(controller.set_slos)
    await controller.mount([])

    await registry.load(["g1"])
    await controller.wait_for_cycle()

    assert "a" in controller.table
    assert len(error_budget_service.calls) == 3


def test_remove_from_list():
    registry = SloRegistry(FakeDocumentStore(), "c")
    registry.replace([make_slo("a"), make_slo("b"), make_slo("a", entity_guid="g2")])
    listener = MagicMock()
    registry.subscribe(listener)

    registry.remove_from_list(make_slo("a").document)

    assert [slo.document.key for slo in registry.slos] == [("g1", "b"), ("g2", "a")]
    listener.assert_called_once()


def test_remove_untracked_document_does_not_notify():
    registry = SloRegistry(FakeDocumentStore(), "c")
    registry.replace([make_slo("a")])
    listener = MagicMock()
    registry.subscribe(listener)

    registry.remove_from_list(make_slo("zzz").document)

    listener.assert_not_called()
    assert len(registry.slos) == 1


def test_registry_config_dedupes():
    config = RegistryConfig(entities=["g1", " g2 ", "", "g1"])

    assert config.entities == ["g1", "g2"]


def test_config_manager_loads_yaml(tmp_path):
    path = tmp_path / "slo_registry.yaml"
    path.write_text("entities:\n  - g1\n  - g2\n")

    config = RegistryConfigManager().load(path)

    assert config.entities == ["g1", "g2"]


def test_config_manager_missing_file(tmp_path):
    manager = RegistryConfigManager()

    assert manager.load(tmp_path / "missing.yaml").entities == []
    assert manager.config == RegistryConfig()


def test_config_manager_rejects_non_mapping(tmp_path):
    path = tmp_path / "slo_registry.yaml"
    path.write_text("- g1\n")

    with pytest.raises(ConfigurationException):
        RegistryConfigManager().load(path)


def test_reload_notifies_only_on_change(tmp_path):
    path = tmp_path / "slo_registry.yaml"
    path.write_text("entities: [g1]\n")
    on_change = MagicMock()
    manager = RegistryConfigManager(on_change=on_change)
    manager.load(path)

    assert manager.reload()
    on_change.assert_not_called()

    path.write_text("entities: [g1, g2]\n")
    assert manager.reload()
    on_change.assert_called_once_with(RegistryConfig(entities=["g1", "g2"]))


def test_reload_keeps_config_on_bad_file(tmp_path):
    path = tmp_path / "slo_registry.yaml"
    path.write_text("entities: [g1]\n")
    manager = RegistryConfigManager()
    manager.load(path)

    path.write_text("entities: [g1\n")

    assert not manager.reload()
    assert manager.config.entities == ["g1"]
