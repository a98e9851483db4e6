"""
YAML inventory plugin.

Reads and writes the litmus inventory file, by default
<inventory location>/spec/fixtures/litmus_inventory.yaml

Schema example
version: 2
groups:
- name: ssh_nodes
  targets:
  - uri: abc123.example.com
    config:
      transport: ssh
      ssh:
        user: root
        host-key-check: false
        connect-timeout: 120
        password: secret
    facts:
      provisioner: abs
      platform: centos-7-x86_64
      job_id: iac-task-pid-42-1700000000000
    vars:
      role: agent

We only manage targets that carry a uri, and of those only uri, config,
facts and vars. Any other key on the document, a group or a target is carried
through to the rewritten file, as are bare string targets, targets known by
name only and groups that are not mappings.

Writes go to a temp file in the same directory followed by os.replace, so a
reader never sees a half written inventory. Two processes doing read, modify,
write on the same file at once can still lose an update.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from abs_provisioner.core.errors import ValidationError
from abs_provisioner.core.types import InventoryNode
from abs_provisioner.inventory.plugins.base import InventoryPlugin
from abs_provisioner.inventory.store import InventoryGroup, InventoryStore

logger = logging.getLogger(__name__)

INVENTORY_RELPATH = Path("spec") / "fixtures" / "litmus_inventory.yaml"

_NODE_KEYS = ("uri", "config", "facts", "vars")
_GROUP_KEYS = ("name", "targets")
_DOC_KEYS = ("groups",)


def sanitise_inventory_location(location: str | os.PathLike[str] | None) -> Path:
    """
    Resolve the inventory location parameter.

    When not specified we use the current working directory.
    """
    if location is None or str(location) == "":
        return Path.cwd()
    return Path(location).expanduser()


def inventory_path(location: str | os.PathLike[str] | None) -> Path:
    """Full path of the inventory file under an inventory location."""
    return sanitise_inventory_location(location) / INVENTORY_RELPATH


def _is_node(obj: Any) -> bool:
    return isinstance(obj, dict) and "uri" in obj


def _node_from_dict(obj: dict[str, Any]) -> InventoryNode:
    """Convert a target dict with a uri into an InventoryNode."""
    vars_obj = obj.get("vars")
    return InventoryNode(
        uri=str(obj["uri"]),
        config=dict(obj.get("config", {}) or {}),
        facts=dict(obj.get("facts", {}) or {}),
        vars=dict(vars_obj) if isinstance(vars_obj, dict) else vars_obj,
        extra={k: v for k, v in obj.items() if k not in _NODE_KEYS},
    )


def _node_to_dict(node: InventoryNode) -> dict[str, Any]:
    out: dict[str, Any] = {"uri": node.uri, "config": node.config, "facts": node.facts}
    if node.vars is not None:
        out["vars"] = node.vars
    out.update(node.extra)
    return out


def _group_from_dict(raw: dict[str, Any]) -> InventoryGroup:
    """
    Convert a group dict into an InventoryGroup.

    Targets without a uri, bare string targets included, are kept as raw
    values. We never manage them, but the file must not lose them.
    """
    raw_targets = raw.get("targets", []) or []
    if not isinstance(raw_targets, list):
        raise ValidationError(f"targets of group {raw['name']} must be a list")

    group = InventoryGroup(
        name=str(raw["name"]),
        extra={k: v for k, v in raw.items() if k not in _GROUP_KEYS},
    )
    for target in raw_targets:
        if _is_node(target):
            group.targets.append(_node_from_dict(target))
        else:
            group.raw_targets.append(target)
    return group


def store_from_dict(data: Any) -> InventoryStore:
    """Convert a parsed inventory document into an InventoryStore."""
    if data is None:
        return InventoryStore.empty()
    if not isinstance(data, dict):
        raise ValidationError("inventory document must be a mapping")

    raw_groups = data.get("groups", []) or []
    if not isinstance(raw_groups, list):
        raise ValidationError("inventory groups must be a list")

    groups: list[InventoryGroup] = []
    unmanaged: list[Any] = []
    for raw in raw_groups:
        if isinstance(raw, dict) and "name" in raw:
            groups.append(_group_from_dict(raw))
        else:
            unmanaged.append(raw)

    return InventoryStore(
        groups=groups,
        extra={k: v for k, v in data.items() if k not in _DOC_KEYS},
        raw_groups=unmanaged,
    )


def store_to_dict(store: InventoryStore) -> dict[str, Any]:
    """
    Inventory document shape, version first and groups last.

    Raw targets come before parsed ones within a group, raw groups after
    every parsed group.
    """
    doc: dict[str, Any] = dict(store.extra)
    doc["groups"] = [
        {
            "name": group.name,
            "targets": list(group.raw_targets) + [_node_to_dict(n) for n in group.targets],
            **group.extra,
        }
        for group in store.groups
    ] + list(store.raw_groups)
    return doc


@dataclass(frozen=True)
class YamlInventoryPlugin(InventoryPlugin):
    """
    Load and save inventory from a local YAML file.

    path points to a YAML file that matches the schema described in the module docstring.
    """

    path: Path

    @classmethod
    def for_location(cls, location: str | os.PathLike[str] | None) -> YamlInventoryPlugin:
        return cls(path=inventory_path(location))

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> InventoryStore:
        if not self.exists():
            logger.debug("inventory %s not found, starting from an empty one", self.path)
            return InventoryStore.empty()

        with self.path.open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ValidationError(f"inventory {self.path} is not valid YAML: {exc}") from exc

        return store_from_dict(data)

    def save(self, store: InventoryStore) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(store_to_dict(store), default_flow_style=False, sort_keys=False)

        temp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as f:
                f.write(text)
                temp_path = f.name

            os.replace(temp_path, self.path)
            temp_path = None
            logger.debug("inventory written to %s", self.path)
        finally:
            if temp_path:
                try:
                    Path(temp_path).unlink()
                except OSError:
                    pass
