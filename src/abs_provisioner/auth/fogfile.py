"""
Fog file token lookup.

The fog credentials file is written by Ruby tooling, so its keys are usually
symbols, which PyYAML reads as strings with a leading colon:

:default:
  :abs_token: 0123456789abcdef

Plain keys (default, abs_token) are accepted as well.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from abs_provisioner.core.errors import CredentialError

logger = logging.getLogger(__name__)


def _lookup(mapping: Any, key: str) -> Any:
    if not isinstance(mapping, dict):
        return None
    for candidate in (f":{key}", key):
        if candidate in mapping:
            return mapping[candidate]
    return None


@dataclass(frozen=True)
class FogfileTokenProvider:
    """
    Token provider backed by a fog file.

    path
    Location of the fog file, usually ~/.fog.

    profile
    Fog profile section to read from.
    """

    path: Path
    profile: str = "default"

    def token_for(self, service: str) -> str:
        """Return the <service>_token value. Raises CredentialError when missing."""
        if not self.path.is_file():
            raise CredentialError(f"Cannot find fog file at {self.path}")

        with self.path.open("r", encoding="utf-8") as f:
            try:
                contents = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise CredentialError(f"fog file {self.path} is not valid YAML") from exc

        token = _lookup(_lookup(contents, self.profile), f"{service}_token")
        if not token:
            raise CredentialError(f"fog file {self.path} has no {service}_token in profile {self.profile}")

        logger.debug("loaded %s token from %s", service, self.path)
        return str(token)
