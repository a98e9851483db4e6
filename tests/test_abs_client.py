from __future__ import annotations

import pytest

from abs_provisioner.core.errors import NotProvisionable, PollTimeout, TransportError
from abs_provisioner.core.settings import ProvisionerSettings
from abs_provisioner.core.types import ProvisionedHost, TeardownRequest
from abs_provisioner.pooling.client import AbsClient, PollSchedule
from abs_provisioner.pooling.http import HttpReply
from abs_provisioner.pooling.mock import ScriptedHttpClient, reply_json
from abs_provisioner.pooling.request import build_provision_request


class FakeClock:
    """Clock that only moves when something sleeps."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_client(replies: list[HttpReply], clock: FakeClock) -> tuple[AbsClient, ScriptedHttpClient]:
    http = ScriptedHttpClient(replies=replies)
    client = AbsClient(
        host="abs-prod.k8s.infracore.puppet.net",
        token="secret-token",
        http=http,
        sleep=clock.sleep,
        clock=clock.time,
    )
    return client, http


def make_request():
    return build_provision_request("centos-7-x86_64", ProvisionerSettings(), job_id="job-1")


def test_poll_schedule_ramps_then_caps():
    schedule = PollSchedule()
    assert [schedule.delay(n) for n in range(1, 13)] == [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 30, 30]


def test_polling_stops_on_first_200_and_returns_its_hosts():
    hosts = [{"hostname": "abc123.example.com", "type": "centos-7-x86_64"}]
    clock = FakeClock()
    client, http = make_client(
        [HttpReply(202), HttpReply(202), HttpReply(202), reply_json(200, hosts), HttpReply(500)],
        clock,
    )

    result = client.provision(make_request(), timeout_seconds=600)

    assert result == [ProvisionedHost(hostname="abc123.example.com", type="centos-7-x86_64")]
    assert http.calls == 4
    assert clock.sleeps == [1, 2, 3]


def test_poll_resends_the_original_request():
    clock = FakeClock()
    client, http = make_client([HttpReply(202), reply_json(200, [])], clock)

    client.provision(make_request(), timeout_seconds=600)

    first, second = http.requests
    assert first.url == "https://abs-prod.k8s.infracore.puppet.net/api/v2/request"
    assert second.url == first.url
    assert second.payload == first.payload
    assert first.headers["X-AUTH-TOKEN"] == "secret-token"
    assert first.headers["Content-Type"] == "application/json"


def test_polling_stops_on_first_404_without_further_polls():
    clock = FakeClock()
    client, http = make_client([HttpReply(202), HttpReply(202), HttpReply(404), reply_json(200, [])], clock)

    with pytest.raises(NotProvisionable):
        client.provision(make_request(), timeout_seconds=600)

    assert http.calls == 3


def test_initial_reply_other_than_202_fails_without_polling():
    clock = FakeClock()
    client, http = make_client([HttpReply(500, "Internal Server Error", "boom")], clock)

    with pytest.raises(TransportError) as excinfo:
        client.provision(make_request(), timeout_seconds=600)

    assert http.calls == 1
    assert excinfo.value.status == 500
    assert "boom" in str(excinfo.value)
    assert clock.sleeps == []


def test_deadline_without_200_raises_timeout_with_configured_duration():
    clock = FakeClock()
    client, http = make_client([HttpReply(202)], clock)

    with pytest.raises(PollTimeout) as excinfo:
        client.provision(make_request(), timeout_seconds=100)

    assert excinfo.value.timeout_seconds == 100
    assert "100 seconds" in str(excinfo.value)
    assert clock.sleeps == [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 30, 30]
    assert http.calls == 13


def test_malformed_200_body_is_a_transport_error():
    clock = FakeClock()
    client, _ = make_client([HttpReply(202), HttpReply(200, body='{"not": "a list"}')], clock)

    with pytest.raises(TransportError):
        client.provision(make_request(), timeout_seconds=600)


def test_release_requires_200():
    clock = FakeClock()
    client, http = make_client([HttpReply(401, "Unauthorized")], clock)
    req = TeardownRequest(job_id="job-1", hosts=[])

    with pytest.raises(TransportError):
        client.release(req)

    assert http.requests[0].url == "https://abs-prod.k8s.infracore.puppet.net/api/v2/return"
