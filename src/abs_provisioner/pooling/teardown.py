"""
Teardown resolver.

Given the hostname of one provisioned node:
1) recover its platform and job id from the inventory facts
2) collect every node that shares that job id, and always the named node
3) ask ABS to release the job, naming only the node we were given
4) prune every collected node and persist

ABS releases a whole job at once, which is why every node of the job goes,
not just the one named.

A missing inventory file is not an error. We still send the release call,
with no job context, and there is nothing to prune. A present inventory that
does not know the node is a NodeLookupError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from abs_provisioner.core.errors import ProvisionerError
from abs_provisioner.core.types import TeardownPhase, TeardownResult
from abs_provisioner.inventory.plugins.base import InventoryPlugin
from abs_provisioner.pooling.client import AbsClient
from abs_provisioner.pooling.request import build_teardown_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeardownResolver:
    """
    Teardown orchestration.

    client
    ABS client used for the release call.

    inventory
    Plugin that owns the persisted inventory.
    """

    client: AbsClient
    inventory: InventoryPlugin

    def tear_down(self, node_name: str) -> TeardownResult:
        job_id: str | None = None
        platform: str | None = None
        had_inventory = self.inventory.exists()

        if had_inventory:
            store = self.inventory.load()
            node = store.require(node_name)
            platform = node.platform
            job_id = node.job_id
            targets = store.uris_for_job(job_id)
            if node_name not in targets:
                targets.append(node_name)
        else:
            logger.warning("no inventory found, releasing %s without job context", node_name)
            store = None
            targets = []

        logger.info("job %s: %s, %d target(s)", job_id, TeardownPhase.resolved, len(targets))

        request = build_teardown_request(job_id=job_id, hostname=node_name, platform=platform)
        try:
            self.client.release(request)
        except ProvisionerError:
            logger.error("job %s: %s", job_id, TeardownPhase.release_failed)
            raise
        logger.info("job %s: %s", job_id, TeardownPhase.released)

        if store is not None:
            for uri in targets:
                store.remove(uri)
            self.inventory.save(store)

        logger.info("job %s: %s %s", job_id, TeardownPhase.pruned, ", ".join(targets) or "nothing")
        return TeardownResult(status="ok", removed=targets)
