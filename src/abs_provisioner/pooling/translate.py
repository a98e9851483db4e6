"""
Response translator.

Maps the hosts ABS handed out into inventory nodes.

Each host becomes one node:
uri is the hostname
config picks ssh or winrm from the platform name
facts record provisioner, platform and the job id that allocated it
vars is the caller supplied YAML, parsed once and shared by every node
"""

from __future__ import annotations

import copy
import re
from typing import Any, Iterable, Optional

import yaml

from abs_provisioner.core.errors import ValidationError
from abs_provisioner.core.settings import ProvisionerSettings
from abs_provisioner.core.types import InventoryNode, ProvisionedHost, Transport
from abs_provisioner.inventory.store import InventoryStore

CONNECT_TIMEOUT_SECONDS = 120

_WINDOWS_PLATFORM = re.compile(r"win-|windows", re.IGNORECASE)


def platform_uses_ssh(platform: str) -> bool:
    """Windows platforms use winrm, everything else ssh."""
    return _WINDOWS_PLATFORM.search(platform) is None


def parse_vars(vars_text: Any) -> Optional[dict[str, Any]]:
    """
    Parse caller supplied vars.

    None means no vars. Text is parsed as YAML and must produce a mapping.
    An already parsed mapping is accepted as is.

    Scalars and lists are rejected rather than wrapped. Inventory vars are a
    mapping of variable name to value, and the test runner merges them into
    group and target vars, so anything else would break it on the next read.
    """
    if vars_text is None:
        return None
    if isinstance(vars_text, dict):
        return vars_text
    if not isinstance(vars_text, str):
        raise ValidationError("vars must be YAML text")

    try:
        parsed = yaml.safe_load(vars_text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"vars is not valid YAML: {exc}") from exc

    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        raise ValidationError("vars must be a YAML mapping")
    return parsed


def connection_config(transport: Transport, settings: ProvisionerSettings) -> dict[str, Any]:
    """
    Connection config for a transport.

    ssh uses the private key when ABS_SSH_PRIVATE_KEY is non empty and falls
    back to the password otherwise.
    """
    if transport == Transport.ssh:
        ssh: dict[str, Any] = {
            "user": settings.ssh_user,
            "host-key-check": False,
            "connect-timeout": CONNECT_TIMEOUT_SECONDS,
        }
        if settings.ssh_private_key:
            ssh["private-key"] = settings.ssh_private_key
        else:
            ssh["password"] = settings.password
        return {"transport": transport.value, "ssh": ssh}

    return {
        "transport": transport.value,
        "winrm": {
            "user": settings.win_user,
            "password": settings.password,
            "ssl": False,
            "connect-timeout": CONNECT_TIMEOUT_SECONDS,
        },
    }


def node_from_host(
    host: ProvisionedHost,
    job_id: str,
    settings: ProvisionerSettings,
    node_vars: Optional[dict[str, Any]] = None,
) -> tuple[InventoryNode, str]:
    """Return the inventory node for a host and the group it belongs to."""
    transport = Transport.ssh if platform_uses_ssh(host.type) else Transport.winrm

    node = InventoryNode(
        uri=host.hostname,
        config=connection_config(transport, settings),
        facts={"provisioner": "abs", "platform": host.type, "job_id": job_id},
        vars=copy.deepcopy(node_vars) if node_vars is not None else None,
    )
    return node, transport.group_name


def record_hosts(
    store: InventoryStore,
    hosts: Iterable[ProvisionedHost],
    job_id: str,
    settings: ProvisionerSettings,
    node_vars: Optional[dict[str, Any]] = None,
) -> int:
    """Add a node per host to the store. Returns the number of hosts recorded."""
    count = 0
    for host in hosts:
        node, group_name = node_from_host(host, job_id, settings, node_vars)
        store.add(node, group_name)
        count += 1
    return count
