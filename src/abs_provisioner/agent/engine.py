"""
Provision engine.

This engine coordinates one provisioning or teardown operation:
request building, the ABS protocol, inventory translation and persistence.

All or nothing
The inventory is read before the request is submitted, so an unreadable file
fails the task before ABS allocates anything. Nothing is written to the
inventory unless ABS reached 200. Any later error aborts the whole operation,
even if ABS allocated some hosts before it failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from abs_provisioner.core.settings import ProvisionerSettings
from abs_provisioner.core.types import ProvisionResult, TeardownResult
from abs_provisioner.inventory.plugins.base import InventoryPlugin
from abs_provisioner.pooling.client import AbsClient
from abs_provisioner.pooling.request import build_provision_request
from abs_provisioner.pooling.teardown import TeardownResolver
from abs_provisioner.pooling.translate import parse_vars, record_hosts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionEngine:
    """
    Provision engine.

    settings
    Resolved environment configuration.

    client
    ABS client.

    inventory
    Inventory plugin for the target location.
    """

    settings: ProvisionerSettings
    client: AbsClient
    inventory: InventoryPlugin

    def provision(self, platform: Any, vars_text: Any = None) -> ProvisionResult:
        """
        Provision hosts for platform and record them in the inventory.

        platform is a platform name or a mapping of platform name to count.
        vars_text is optional YAML attached to every new node.
        """
        node_vars = parse_vars(vars_text)
        request = build_provision_request(platform, self.settings)
        store = self.inventory.load()
        logger.info(
            "requesting %s from %s as job %s (priority %d)",
            request.resources,
            self.settings.abs_host,
            request.job_id,
            request.priority,
        )

        hosts = self.client.provision(request, self.settings.poll_timeout_seconds)

        count = record_hosts(store, hosts, request.job_id, self.settings, node_vars)
        self.inventory.save(store)

        return ProvisionResult(status="ok", nodes=count)

    def tear_down(self, node_name: str) -> TeardownResult:
        """Release the job that provisioned node_name and prune all of its nodes."""
        return TeardownResolver(client=self.client, inventory=self.inventory).tear_down(node_name)
