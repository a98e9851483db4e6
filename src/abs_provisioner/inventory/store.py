"""
Inventory store.

We keep the litmus inventory in memory as groups of InventoryNode records.
The file plugin loads it and writes it back wholesale.

Why a job index
One provisioning job may allocate several hosts, and teardown by one host
must remove all of them. The store keeps job_id -> node uris up to date on
every add and remove, so teardown does not have to rescan every group.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from abs_provisioner.core.errors import NodeLookupError
from abs_provisioner.core.types import InventoryNode

INVENTORY_VERSION = 2
DEFAULT_GROUPS = ("docker_nodes", "ssh_nodes", "winrm_nodes")


@dataclass
class InventoryGroup:
    """
    A named group of targets.

    extra keeps group keys we do not manage, such as group level config.

    raw_targets keeps targets we cannot parse into a node, such as bare
    string uris or targets identified by name only. They are written back
    unchanged, ahead of the parsed targets.
    """

    name: str
    targets: List[InventoryNode] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)
    raw_targets: List[Any] = field(default_factory=list)


@dataclass
class InventoryStore:
    """
    Group aware node registry.

    This is enough for:
    recording freshly provisioned nodes
    looking up a node's facts by uri
    finding every node of a job
    pruning nodes after release

    raw_groups keeps groups that are not mappings, written back unchanged.
    """

    groups: List[InventoryGroup] = None  # type: ignore
    extra: Dict[str, Any] = None  # type: ignore
    raw_groups: List[Any] = None  # type: ignore
    _by_job: Dict[str, Dict[str, None]] = field(default=None, init=False, repr=False, compare=False)  # type: ignore

    def __post_init__(self) -> None:
        if self.groups is None:
            self.groups = []
        if self.extra is None:
            self.extra = {}
        if self.raw_groups is None:
            self.raw_groups = []
        self._by_job = {}
        for group in self.groups:
            for node in group.targets:
                self._index(node)

    @classmethod
    def empty(cls) -> InventoryStore:
        """Return a fresh inventory with the default litmus groups."""
        return cls(
            groups=[InventoryGroup(name=name) for name in DEFAULT_GROUPS],
            extra={"version": INVENTORY_VERSION},
        )

    def _index(self, node: InventoryNode) -> None:
        if node.job_id is not None:
            self._by_job.setdefault(node.job_id, {})[node.uri] = None

    def _unindex(self, node: InventoryNode) -> None:
        if node.job_id is None:
            return
        uris = self._by_job.get(node.job_id)
        if uris is None:
            return
        uris.pop(node.uri, None)
        if not uris:
            self._by_job.pop(node.job_id, None)

    def group(self, name: str) -> Optional[InventoryGroup]:
        """Return the named group if present."""
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def ensure_group(self, name: str) -> InventoryGroup:
        """Return the named group, creating it when missing."""
        found = self.group(name)
        if found is None:
            found = InventoryGroup(name=name)
            self.groups.append(found)
        return found

    def add(self, node: InventoryNode, group_name: str) -> None:
        """Add a node to a group, replacing any record with the same uri in that group."""
        group = self.ensure_group(group_name)
        for i, existing in enumerate(group.targets):
            if existing.uri == node.uri:
                self._unindex(existing)
                group.targets[i] = node
                break
        else:
            group.targets.append(node)
        self._index(node)

    def get(self, uri: str) -> Optional[InventoryNode]:
        """Return the first node with this uri, searching groups in order."""
        for group in self.groups:
            for node in group.targets:
                if node.uri == uri:
                    return node
        return None

    def require(self, uri: str) -> InventoryNode:
        """Return the node with this uri. Raises NodeLookupError when absent."""
        node = self.get(uri)
        if node is None:
            raise NodeLookupError(f"node {uri} not found in inventory")
        return node

    def uris_for_job(self, job_id: Optional[str]) -> List[str]:
        """Return uris of every node provisioned by job_id, in insertion order."""
        if job_id is None:
            return []
        return list(self._by_job.get(job_id, {}).keys())

    def remove(self, uri: str) -> bool:
        """Remove every node with this uri from every group. Returns True if any was removed."""
        removed = False
        for group in self.groups:
            kept: List[InventoryNode] = []
            for node in group.targets:
                if node.uri == uri:
                    self._unindex(node)
                    removed = True
                else:
                    kept.append(node)
            group.targets = kept
        return removed

    def all(self) -> List[InventoryNode]:
        """Return all nodes as a list."""
        return [node for group in self.groups for node in group.targets]

    def names(self) -> List[str]:
        """Return sorted node uris. Useful for deterministic outputs."""
        return sorted(node.uri for node in self.all())
