from __future__ import annotations

from pathlib import Path

import pytest

from abs_provisioner.core.errors import NodeLookupError, TransportError
from abs_provisioner.core.types import InventoryNode
from abs_provisioner.inventory.plugins.yaml_file import YamlInventoryPlugin
from abs_provisioner.inventory.store import InventoryStore
from abs_provisioner.pooling.client import AbsClient
from abs_provisioner.pooling.http import HttpReply
from abs_provisioner.pooling.mock import ScriptedHttpClient
from abs_provisioner.pooling.teardown import TeardownResolver


def make_node(uri: str, job_id: str, platform: str = "centos-7-x86_64") -> InventoryNode:
    return InventoryNode(
        uri=uri,
        config={"transport": "ssh", "ssh": {"user": "root"}},
        facts={"provisioner": "abs", "platform": platform, "job_id": job_id},
    )


def write_inventory(tmp_path: Path) -> YamlInventoryPlugin:
    """A and B belong to job-1, C to job-2."""
    plugin = YamlInventoryPlugin.for_location(tmp_path)
    store = InventoryStore.empty()
    store.add(make_node("a.example.com", "job-1"), "ssh_nodes")
    store.add(make_node("b.example.com", "job-1", platform="win-2019-x86_64"), "winrm_nodes")
    store.add(make_node("c.example.com", "job-2"), "ssh_nodes")
    plugin.save(store)
    return plugin


def make_resolver(plugin: YamlInventoryPlugin, reply: HttpReply) -> tuple[TeardownResolver, ScriptedHttpClient]:
    http = ScriptedHttpClient(replies=[reply])
    client = AbsClient(host="abs.example.com", token="t", http=http)
    return TeardownResolver(client=client, inventory=plugin), http


def test_teardown_removes_every_node_of_the_job(tmp_path: Path):
    plugin = write_inventory(tmp_path)
    resolver, http = make_resolver(plugin, HttpReply(200))

    result = resolver.tear_down("a.example.com")

    assert result.status == "ok"
    assert result.removed == ["a.example.com", "b.example.com"]
    assert plugin.load().names() == ["c.example.com"]


def test_release_names_only_the_requested_host(tmp_path: Path):
    plugin = write_inventory(tmp_path)
    resolver, http = make_resolver(plugin, HttpReply(200))

    resolver.tear_down("a.example.com")

    assert http.calls == 1
    assert http.requests[0].url == "https://abs.example.com/api/v2/return"
    assert http.requests[0].payload == {
        "job_id": "job-1",
        "hosts": [{"hostname": "a.example.com", "type": "centos-7-x86_64", "engine": "vmpooler"}],
    }


def test_missing_inventory_still_releases_without_job_context(tmp_path: Path):
    plugin = YamlInventoryPlugin.for_location(tmp_path)
    resolver, http = make_resolver(plugin, HttpReply(200))

    result = resolver.tear_down("a.example.com")

    assert result.removed == []
    assert http.requests[0].payload == {
        "job_id": None,
        "hosts": [{"hostname": "a.example.com", "type": None, "engine": "vmpooler"}],
    }
    assert not plugin.exists()


def test_node_absent_from_existing_inventory_is_a_lookup_error(tmp_path: Path):
    plugin = write_inventory(tmp_path)
    resolver, http = make_resolver(plugin, HttpReply(200))

    with pytest.raises(NodeLookupError):
        resolver.tear_down("nope.example.com")

    assert http.calls == 0


def test_failed_release_leaves_inventory_untouched(tmp_path: Path):
    plugin = write_inventory(tmp_path)
    resolver, _ = make_resolver(plugin, HttpReply(500, "Internal Server Error"))

    with pytest.raises(TransportError):
        resolver.tear_down("a.example.com")

    assert plugin.load().names() == ["a.example.com", "b.example.com", "c.example.com"]


def test_node_without_job_id_is_still_pruned(tmp_path: Path):
    plugin = write_inventory(tmp_path)
    store = plugin.load()
    store.add(InventoryNode(uri="manual.example.com", config={"transport": "ssh"}), "ssh_nodes")
    plugin.save(store)
    resolver, http = make_resolver(plugin, HttpReply(200))

    result = resolver.tear_down("manual.example.com")

    assert result.removed == ["manual.example.com"]
    assert http.requests[0].payload["job_id"] is None
    assert plugin.load().names() == ["a.example.com", "b.example.com", "c.example.com"]
