"""
Provisioner settings.

All environment driven configuration is resolved once, at process start, into
a frozen ProvisionerSettings. The request builder, translator and runner take
it as an explicit argument and never read os.environ themselves.

Recognized variables

ABS_SUBDOMAIN
  Selects prod, stage, etc. Defaults to abs-prod.

POLL_ABS_TIMEOUT_SECONDS
  Poll window in seconds. Defaults to 600.

CI, TRAVIS, APPVEYOR, GITHUB_ACTIONS and friends
  CI detection, used for priority and the build url tag.

ABS_USER, ABS_WIN_USER, ABS_PASSWORD, ABS_SSH_PRIVATE_KEY
  Credentials written into inventory connection config.

FOG_RC
  Path of the fog credentials file. Defaults to ~/.fog.

ABS_DEBUG
  Any non empty value enables debug logging.
"""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from abs_provisioner.core.errors import ValidationError
from abs_provisioner.pooling.request import detect_build_url

ABS_DOMAIN = "k8s.infracore.puppet.net"
DEFAULT_SUBDOMAIN = "abs-prod"
DEFAULT_POLL_TIMEOUT_SECONDS = 600


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def _parse_timeout(raw: Optional[str]) -> int:
    if raw is None or raw == "":
        return DEFAULT_POLL_TIMEOUT_SECONDS
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"POLL_ABS_TIMEOUT_SECONDS must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValidationError("POLL_ABS_TIMEOUT_SECONDS must be positive")
    return value


@dataclass(frozen=True)
class ProvisionerSettings:
    """
    Resolved configuration.

    abs_host
    Fully qualified ABS host name.

    poll_timeout_seconds
    Upper bound on the poll loop.

    ci
    True when the CI variable is set. Drives request priority.

    build_url
    CI build url, or https://litmus_manual.

    requester
    Login name recorded in job tags.

    ssh_user, win_user, password, ssh_private_key
    Credentials recorded in node connection config.

    fog_path
    Location of the fog credentials file.
    """

    abs_host: str = f"{DEFAULT_SUBDOMAIN}.{ABS_DOMAIN}"
    poll_timeout_seconds: int = DEFAULT_POLL_TIMEOUT_SECONDS
    ci: bool = False
    build_url: str = "https://litmus_manual"
    requester: str = "unknown"
    ssh_user: Optional[str] = None
    win_user: Optional[str] = None
    password: Optional[str] = None
    ssh_private_key: Optional[str] = None
    fog_path: Path = Path("~/.fog")
    debug: bool = False

    @property
    def priority(self) -> int:
        return 1 if self.ci else 2

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ProvisionerSettings:
        """Resolve settings from a mapping, defaulting to os.environ."""
        if env is None:
            env = os.environ

        subdomain = env.get("ABS_SUBDOMAIN") or DEFAULT_SUBDOMAIN

        return cls(
            abs_host=f"{subdomain}.{ABS_DOMAIN}",
            poll_timeout_seconds=_parse_timeout(env.get("POLL_ABS_TIMEOUT_SECONDS")),
            ci=bool(env.get("CI")),
            build_url=detect_build_url(env),
            requester=_current_user(),
            ssh_user=env.get("ABS_USER"),
            win_user=env.get("ABS_WIN_USER"),
            password=env.get("ABS_PASSWORD"),
            ssh_private_key=env.get("ABS_SSH_PRIVATE_KEY"),
            fog_path=Path(env.get("FOG_RC") or "~/.fog").expanduser(),
            debug=bool(env.get("ABS_DEBUG")),
        )
