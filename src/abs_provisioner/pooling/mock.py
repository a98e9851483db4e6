"""
Scripted http client.

This client is used for tests and local simulations.
It replays a fixed list of replies in order and records every request it saw.

Features
- Records url, decoded JSON body and headers of each POST
- Repeats the last reply once the script runs out, which models a service
  that keeps answering 202 while a job is pending
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from abs_provisioner.pooling.http import HttpClient, HttpReply


@dataclass(frozen=True)
class RecordedRequest:
    url: str
    payload: Any
    headers: dict[str, str]


@dataclass
class ScriptedHttpClient(HttpClient):
    """
    In memory http client.

    replies
    Replies handed out in order. Must not be empty.
    """

    replies: list[HttpReply]
    requests: list[RecordedRequest] = field(default_factory=list)

    def post(self, url: str, body: bytes, headers: dict[str, str]) -> HttpReply:
        self.requests.append(
            RecordedRequest(url=url, payload=json.loads(body.decode("utf-8")), headers=dict(headers))
        )
        index = min(len(self.requests), len(self.replies)) - 1
        return self.replies[index]

    @property
    def calls(self) -> int:
        return len(self.requests)


def reply_json(status: int, payload: Any) -> HttpReply:
    """Build a reply whose body is the JSON encoding of payload."""
    return HttpReply(status=status, body=json.dumps(payload))
