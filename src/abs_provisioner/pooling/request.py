"""
Request builder.

Builds the ABS provisioning and release payloads.

This module is pure construction. The only moving part is job id generation,
which must stay unique across concurrent invocations on one host. We compose
the process id with a millisecond timestamp, and within one process we never
hand out the same millisecond twice.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from abs_provisioner.core.errors import ValidationError
from abs_provisioner.core.types import JobSpec, ProvisionRequest, ReleaseHost, TeardownRequest

if TYPE_CHECKING:
    from abs_provisioner.core.settings import ProvisionerSettings

MANUAL_BUILD_URL = "https://litmus_manual"


def detect_build_url(env: Mapping[str, str]) -> str:
    """
    Pick the CI build url.

    Precedence
    1) Travis
    2) AppVeyor
    3) GitHub Actions
    4) manual sentinel

    The truthy spellings differ per CI system and are matched exactly.
    """
    if env.get("CI") == "true" and env.get("TRAVIS") == "true":
        return env.get("TRAVIS_JOB_WEB_URL", "")
    if env.get("CI") == "True" and env.get("APPVEYOR") == "True":
        repo = env.get("APPVEYOR_REPO_NAME", "")
        job = env.get("APPVEYOR_JOB_ID", "")
        return f"https://ci.appveyor.com/project/{repo}/build/job/{job}"
    if env.get("GITHUB_ACTIONS") == "true":
        repo = env.get("GITHUB_REPOSITORY", "")
        run_id = env.get("GITHUB_RUN_ID", "")
        return f"https://github.com/{repo}/actions/runs/{run_id}"
    return MANUAL_BUILD_URL


@dataclass
class JobIdGenerator:
    """
    Unique job id source.

    clock returns seconds as a float, like time.time.
    Ids look like iac-task-pid-<pid>-<epoch ms>.
    """

    clock: Callable[[], float] = time.time
    pid: int = field(default_factory=os.getpid)
    _last_ms: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def next_id(self) -> str:
        with self._lock:
            now_ms = int(self.clock() * 1000)
            if now_ms <= self._last_ms:
                now_ms = self._last_ms + 1
            self._last_ms = now_ms
        return f"iac-task-pid-{self.pid}-{now_ms}"


_default_generator = JobIdGenerator()


def make_job_id() -> str:
    """Return a fresh job id from the process wide generator."""
    return _default_generator.next_id()


def normalize_resources(platform: Any) -> dict[str, int]:
    """
    Convert a platform argument into a resources mapping.

    A bare string means one instance of that platform.
    A mapping of platform to count is passed through unchanged.
    """
    if isinstance(platform, str):
        if not platform:
            raise ValidationError("platform must be a non empty string")
        return {platform: 1}

    if isinstance(platform, Mapping):
        if not platform:
            raise ValidationError("platform mapping must not be empty")
        for name, count in platform.items():
            if not isinstance(name, str) or not name:
                raise ValidationError("platform names must be non empty strings")
            if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
                raise ValidationError(f"count for platform {name} must be a positive integer")
        return dict(platform)

    raise ValidationError("platform must be a string or a mapping of platform to count")


def build_provision_request(
    platform: Any,
    settings: ProvisionerSettings,
    job_id: str | None = None,
) -> ProvisionRequest:
    """Build the payload for POST /api/v2/request."""
    resources = normalize_resources(platform)
    return ProvisionRequest(
        resources=resources,
        priority=settings.priority,
        job=JobSpec(
            id=job_id or make_job_id(),
            tags={
                "user": settings.requester,
                "jenkins_build_url": settings.build_url,
            },
        ),
    )


def build_teardown_request(
    job_id: str | None,
    hostname: str,
    platform: str | None,
) -> TeardownRequest:
    """
    Build the payload for POST /api/v2/return.

    ABS releases the whole job, so one representative host is enough.
    """
    return TeardownRequest(
        job_id=job_id,
        hosts=[ReleaseHost(hostname=hostname, type=platform)],
    )
