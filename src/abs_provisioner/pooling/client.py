"""
ABS polling client.

Provisioning in ABS is asynchronous:
1) POST the request. ABS answers 202 Accepted.
2) POST the very same request again on a schedule. ABS keeps answering 202
   until the hosts are ready, then answers 200 with a JSON list of hosts.
   A 404 means the hosts will never be provisioned.

Re-sending the original request is how ABS is polled. There is no status
endpoint we know of, so we keep this shape exactly.

Release is a single synchronous POST that must answer 200.

sleep and clock are injectable so tests can run the loop without waiting.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from abs_provisioner.core.errors import NotProvisionable, PollTimeout, TransportError
from abs_provisioner.core.serialization import encode_body
from abs_provisioner.core.types import (
    ProvisionedHost,
    ProvisionPhase,
    ProvisionRequest,
    TeardownRequest,
)
from abs_provisioner.pooling.http import HttpClient, HttpReply, UrllibHttpClient

logger = logging.getLogger(__name__)

REQUEST_PATH = "/api/v2/request"
RETURN_PATH = "/api/v2/return"


@dataclass(frozen=True)
class PollSchedule:
    """
    Sleep schedule between polls.

    The delay grows by one second per attempt up to ramp_limit_seconds,
    then stays at slow_interval_seconds. Fast provisions are picked up
    quickly, slow ones stop hammering the API.
    """

    ramp_limit_seconds: int = 10
    slow_interval_seconds: int = 30

    def delay(self, attempt: int) -> int:
        """Delay before poll number attempt, counting from 1."""
        if attempt <= self.ramp_limit_seconds:
            return attempt
        return self.slow_interval_seconds


def _describe(reply: HttpReply) -> str:
    return f"{reply.status} {reply.reason}".strip()


def _parse_hosts(body: str) -> list[ProvisionedHost]:
    try:
        raw: Any = json.loads(body)
    except ValueError as exc:
        raise TransportError("ABS returned a 200 response that is not JSON", status=200, body=body) from exc

    if not isinstance(raw, list):
        raise TransportError("ABS returned a 200 response that is not a host list", status=200, body=body)

    hosts: list[ProvisionedHost] = []
    for obj in raw:
        if not isinstance(obj, dict) or "hostname" not in obj or "type" not in obj:
            raise TransportError(f"ABS returned a malformed host record: {obj!r}", status=200, body=body)
        hosts.append(ProvisionedHost.from_dict(obj))
    return hosts


@dataclass
class AbsClient:
    """
    ABS API client.

    host
    ABS host name, without scheme.

    token
    Value of the X-AUTH-TOKEN header.

    http
    Transport. Defaults to urllib.

    schedule
    Poll sleep schedule.
    """

    host: str
    token: str
    http: HttpClient = field(default_factory=UrllibHttpClient)
    schedule: PollSchedule = PollSchedule()
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.time

    def _url(self, path: str) -> str:
        return f"https://{self.host}{path}"

    def _headers(self) -> dict[str, str]:
        return {"X-AUTH-TOKEN": self.token, "Content-Type": "application/json"}

    def provision(self, request: ProvisionRequest, timeout_seconds: int) -> list[ProvisionedHost]:
        """
        Submit a provisioning request and poll until ABS answers 200.

        Returns the hosts listed in the 200 reply.

        Raises
        TransportError when the first reply is not 202.
        NotProvisionable on the first 404 while polling.
        PollTimeout when the deadline passes without a 200.
        """
        url = self._url(REQUEST_PATH)
        body = encode_body(request)
        headers = self._headers()

        deadline = self.clock() + timeout_seconds
        logger.info("job %s: %s", request.job_id, ProvisionPhase.built)

        reply = self.http.post(url, body, headers)
        logger.debug("job %s: received %s from ABS", request.job_id, _describe(reply))
        if reply.status != 202:
            raise TransportError(
                f"Error: {_describe(reply)}: {reply.body}",
                status=reply.status,
                body=reply.body,
            )
        logger.info("job %s: %s", request.job_id, ProvisionPhase.submitted)

        attempt = 1
        logger.info("job %s: %s for up to %s seconds", request.job_id, ProvisionPhase.polling, timeout_seconds)
        while self.clock() < deadline:
            self.sleep(self.schedule.delay(attempt))
            reply = self.http.post(url, body, headers)
            logger.debug("job %s: poll %d received %s", request.job_id, attempt, _describe(reply))

            if reply.status == 200:
                break
            if reply.status == 404:
                logger.error("job %s: %s", request.job_id, ProvisionPhase.not_found)
                raise NotProvisionable("ABS API Error: Received a HTTP 404 response")

            attempt += 1

        if reply.status != 200:
            logger.error("job %s: %s", request.job_id, ProvisionPhase.timed_out)
            raise PollTimeout(timeout_seconds)

        hosts = _parse_hosts(reply.body)
        logger.info("job %s: %s with %d host(s)", request.job_id, ProvisionPhase.provisioned, len(hosts))
        return hosts

    def release(self, request: TeardownRequest) -> None:
        """Release a job. Any reply other than 200 is a TransportError."""
        reply = self.http.post(self._url(RETURN_PATH), encode_body(request), self._headers())
        logger.debug("job %s: release received %s from ABS", request.job_id, _describe(reply))
        if reply.status != 200:
            raise TransportError(
                f"Error: {_describe(reply)}: {reply.body}",
                status=reply.status,
                body=reply.body,
            )
