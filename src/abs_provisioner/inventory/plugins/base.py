"""
Inventory plugin interfaces.

Goal
Keep the provisioner independent of where the inventory lives.

Inventory is normalized into InventoryStore and InventoryNode objects.
A plugin reads it, the engine mutates the store, and the plugin writes the
whole structure back.

We keep the interface narrow so it is easy to mock in tests.
"""

from __future__ import annotations

from typing import Protocol

from abs_provisioner.inventory.store import InventoryStore


class InventoryPlugin(Protocol):
    """
    Inventory plugin interface.

    exists reports whether a persisted inventory is present.
    load returns a fully populated InventoryStore, or a fresh one when absent.
    save persists the whole store.
    """

    def exists(self) -> bool:
        """Return True when a persisted inventory is present."""

    def load(self) -> InventoryStore:
        """Load inventory into an InventoryStore."""

    def save(self, store: InventoryStore) -> None:
        """Persist the whole store."""
