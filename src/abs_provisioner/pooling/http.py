"""
HTTP transport.

A minimal http client interface with no third party deps.

The ABS protocol is driven by status codes, so unlike a typical client we do
not raise on non 2xx replies. urllib raises HTTPError for those, and we turn
it back into a plain HttpReply. Only failures to get any reply at all become
TransportError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from abs_provisioner.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpReply:
    """Status code, reason phrase and raw body of one reply."""

    status: int
    reason: str = ""
    body: str = ""


class HttpClient(Protocol):
    """Simple http client interface for testability."""

    def post(self, url: str, body: bytes, headers: dict[str, str]) -> HttpReply:
        """Send a POST and return the reply, whatever its status."""


@dataclass
class UrllibHttpClient(HttpClient):
    """Default http client using urllib."""

    timeout_seconds: int = 60

    def post(self, url: str, body: bytes, headers: dict[str, str]) -> HttpReply:
        req = Request(url, data=body, headers=headers, method="POST")
        try:
            with urlopen(req, timeout=self.timeout_seconds) as resp:
                return HttpReply(
                    status=int(resp.status),
                    reason=str(resp.reason or ""),
                    body=resp.read().decode("utf-8", errors="replace"),
                )
        except HTTPError as exc:
            raw = exc.read() if exc.fp is not None else b""
            return HttpReply(
                status=int(exc.code),
                reason=str(exc.reason or ""),
                body=raw.decode("utf-8", errors="replace"),
            )
        except (URLError, OSError) as exc:
            logger.debug("POST %s failed before a reply: %s", url, exc)
            raise TransportError(f"Error: unable to reach {url}: {exc}") from exc
