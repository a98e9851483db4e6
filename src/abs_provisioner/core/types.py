"""
Core types.

This file defines the shared data structures used across the provisioner.

Important design choice
Request types mirror the ABS wire format field for field, so that
serialization is a plain dataclass to dict conversion.

Inventory nodes keep config and facts as dictionaries because the downstream
test runner owns that schema. We only read and write the fields we need and
carry everything else through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import Any, Dict, List, Optional


class Transport(str, Enum):
    """
    How the test runner connects to a node.

    ssh
      Unix like platforms.

    winrm
      Windows platforms.

    The group a node lands in is derived from its transport.
    """

    ssh = "ssh"
    winrm = "winrm"

    @property
    def group_name(self) -> str:
        return f"{self.value}_nodes"


class ProvisionPhase(StrEnum):
    """
    Provisioning state machine.

    built -> submitted -> polling -> provisioned
    polling may also end in not_found or timed_out, both terminal failures.
    """

    built = "built"
    submitted = "submitted"
    polling = "polling"
    provisioned = "provisioned"
    not_found = "not_found"
    timed_out = "timed_out"


class TeardownPhase(StrEnum):
    """
    Teardown state machine.

    resolved -> released -> pruned
    resolved may also end in release_failed.
    """

    resolved = "resolved"
    released = "released"
    pruned = "pruned"
    release_failed = "release_failed"


@dataclass(frozen=True)
class JobSpec:
    """
    Job section of a provisioning request.

    id must be unique per run.
    tags carries requester identity and the CI build url.
    """

    id: str
    tags: Dict[str, str]


@dataclass(frozen=True)
class ProvisionRequest:
    """
    Provisioning payload sent to ABS.

    resources maps platform name to requested count.
    priority is 1 for CI runs and 2 for manual runs.
    """

    resources: Dict[str, int]
    priority: int
    job: JobSpec

    @property
    def job_id(self) -> str:
        return self.job.id


@dataclass(frozen=True)
class ProvisionedHost:
    """One host allocated by ABS."""

    hostname: str
    type: str

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> ProvisionedHost:
        return cls(hostname=str(obj["hostname"]), type=str(obj["type"]))


@dataclass(frozen=True)
class ReleaseHost:
    """Representative host record in a teardown request."""

    hostname: str
    type: Optional[str]
    engine: str = "vmpooler"


@dataclass(frozen=True)
class TeardownRequest:
    """
    Release payload sent to ABS.

    job_id is None when the inventory file was missing and we could not
    recover any job context.
    """

    job_id: Optional[str]
    hosts: List[ReleaseHost]


@dataclass
class InventoryNode:
    """
    A target record in the inventory.

    uri
    Hostname the test runner connects to.

    config
    Transport specific connection settings, for example
    {"transport": "ssh", "ssh": {"user": "root", ...}}

    facts
    Provisioner metadata. We write provisioner, platform and job_id.

    vars
    Optional free form mapping supplied by the caller.

    extra
    Any other keys found in the file. Preserved on rewrite.
    """

    uri: str
    config: Dict[str, Any] = field(default_factory=dict)
    facts: Dict[str, Any] = field(default_factory=dict)
    vars: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def job_id(self) -> Optional[str]:
        value = self.facts.get("job_id")
        return None if value is None else str(value)

    @property
    def platform(self) -> Optional[str]:
        value = self.facts.get("platform")
        return None if value is None else str(value)


@dataclass(frozen=True)
class ProvisionResult:
    status: str
    nodes: int


@dataclass(frozen=True)
class TeardownResult:
    status: str
    removed: List[str]
