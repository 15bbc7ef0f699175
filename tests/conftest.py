"""Shared fixtures: an in-memory Typesense HTTP API behind urlopen."""

from __future__ import annotations

import http.client
import io
import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import patch

import pytest


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    body: bytes | None
    timeout: float | None

    def json(self) -> Any:
        assert self.body is not None
        return json.loads(self.body)


class FakeResponse(io.BytesIO):
    """Enough of ``http.client.HTTPResponse`` for the clients."""

    def __init__(self, status: int, body: bytes) -> None:
        super().__init__(body)
        self.status = status


class TruncatedBody(bytes):
    """Response body whose connection drops after the first bytes."""


class TruncatedResponse(FakeResponse):
    """A 200 response that fails with ``IncompleteRead`` once read past its prefix."""

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if not chunk:
            raise http.client.IncompleteRead(b"", 1024)
        return chunk

    def readline(self, size: int | None = -1) -> bytes:
        line = super().readline(size)
        if not line:
            raise http.client.IncompleteRead(b"", 1024)
        return line

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        return self.readline()


@dataclass
class FakeTypesense:
    """Routes ``(method, path)`` to canned responses and records every call.

    Unrouted requests answer 404. A route may hold a list of responses,
    which are returned in order (the last one repeats).
    """

    routes: dict[tuple[str, str], list[tuple[int, bytes]]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)

    def add(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self.routes.setdefault((method, path), []).append((status, _encode(body)))

    def calls(self, method: str | None = None, path: str | None = None) -> list[RecordedRequest]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.path == path)
        ]

    def __call__(self, req: urllib.request.Request, timeout: float | None = None) -> FakeResponse:
        parts = urllib.parse.urlsplit(req.full_url)
        data = req.data
        if data is not None and hasattr(data, "read"):
            data = data.read()
        self.requests.append(RecordedRequest(
            method=req.get_method(),
            path=parts.path,
            query=dict(urllib.parse.parse_qsl(parts.query)),
            headers={k.lower(): v for k, v in req.header_items()},
            body=data,
            timeout=timeout,
        ))

        responses = self.routes.get((req.get_method(), parts.path))
        if not responses:
            status, body = 404, b'{"message": "Not Found"}'
        elif len(responses) > 1:
            status, body = responses.pop(0)
        else:
            status, body = responses[0]

        if status >= 400:
            raise urllib.error.HTTPError(req.full_url, status, "error", {}, io.BytesIO(body))
        if isinstance(body, TruncatedBody):
            return TruncatedResponse(status, body)
        return FakeResponse(status, body)


def _encode(body: Any) -> bytes:
    if body is None:
        return b"{}"
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


@pytest.fixture()
def fake_api():
    api = FakeTypesense()
    with patch("urllib.request.urlopen", side_effect=api):
        yield api


@pytest.fixture()
def v29_api(fake_api: FakeTypesense) -> FakeTypesense:
    fake_api.add("GET", "/debug", {"state": 1, "version": "29.0"})
    return fake_api


@pytest.fixture()
def v30_api(fake_api: FakeTypesense) -> FakeTypesense:
    fake_api.add("GET", "/debug", {"state": 1, "version": "30.1"})
    return fake_api
