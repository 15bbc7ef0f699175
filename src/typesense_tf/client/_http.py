"""JSON-over-HTTP plumbing shared by the Server and Cloud clients.

Uses stdlib ``urllib.request``, no extra dependencies required. Each
call is one request: no retries, no connection pooling, no state.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterable
from typing import Any, BinaryIO, TypeVar

from pydantic import BaseModel, ValidationError

from typesense_tf.client.errors import ApiError, DecodeError, TransportError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

TRANSPORT_ERRORS = (urllib.error.URLError, http.client.HTTPException, OSError)


def quote_segment(segment: str | int) -> str:
    """Percent-encode one path segment (``/`` included)."""
    return urllib.parse.quote(str(segment), safe="")


def path(*segments: str | int) -> str:
    return "/" + "/".join(quote_segment(s) for s in segments)


class JsonHttpClient:
    """Base class: base URL, fixed auth headers, status-code mapping."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        timeout: float | None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json", **headers}
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    # -------------------------- HTTP plumbing --------------------------

    def _build_request(
        self,
        method: str,
        url_path: str,
        *,
        data: bytes | BinaryIO | None = None,
        query: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> urllib.request.Request:
        url = self._base_url + url_path
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        return urllib.request.Request(
            url,
            data=data,
            headers={**self._headers, **(headers or {})},
            method=method,
        )

    def _send(
        self,
        method: str,
        url_path: str,
        *,
        operation: str,
        payload: Any = None,
        ok_missing: bool = False,
        tolerate: Iterable[int] = (),
    ) -> tuple[int, bytes]:
        """Send one JSON request and return ``(status, raw body)``.

        A 404 is returned to the caller when *ok_missing* is set; codes in
        *tolerate* are returned as well. Any other non-2xx raises ``ApiError``.
        """
        body = None if payload is None else json.dumps(payload).encode("utf-8")
        req = self._build_request(method, url_path, data=body)
        passthrough = set(tolerate)
        if ok_missing:
            passthrough.add(404)

        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                raw = resp.read()
                status = resp.status
        except urllib.error.HTTPError as e:
            raw = e.read() or b""
            logger.debug("%s %s -> %d", method, url_path, e.code)
            if e.code in passthrough:
                return e.code, raw
            raise ApiError(operation, e.code, raw.decode("utf-8", "replace")) from e
        except TRANSPORT_ERRORS as e:
            raise TransportError(operation, getattr(e, "reason", e)) from e

        logger.debug("%s %s -> %d", method, url_path, status)
        return status, raw

    def _open_stream(
        self,
        method: str,
        url_path: str,
        *,
        operation: str,
        data: BinaryIO | None = None,
        query: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> http.client.HTTPResponse:
        """Open a request whose body and/or response are streamed.

        The caller owns the returned response and must close it.
        """
        req = self._build_request(method, url_path, data=data, query=query, headers=headers)
        try:
            resp = urllib.request.urlopen(req, timeout=timeout)  # noqa: S310
        except urllib.error.HTTPError as e:
            raw = e.read() or b""
            raise ApiError(operation, e.code, raw.decode("utf-8", "replace")) from e
        except TRANSPORT_ERRORS as e:
            raise TransportError(operation, getattr(e, "reason", e)) from e
        logger.debug("%s %s -> %d (streaming)", method, url_path, resp.status)
        return resp

    # ------------------------- decoding helpers -------------------------

    @staticmethod
    def _decode(operation: str, raw: bytes) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(operation, e) from e

    def _model(self, model: type[M], operation: str, data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise DecodeError(operation, e) from e

    def _model_list(
        self, model: type[M], operation: str, data: Any, envelope: str | None = None,
    ) -> list[M]:
        if envelope is not None:
            if not isinstance(data, dict):
                raise DecodeError(operation, f"expected an object with {envelope!r}")
            data = data.get(envelope) or []
        if not isinstance(data, list):
            raise DecodeError(operation, "expected a JSON array")
        return [self._model(model, operation, item) for item in data]

    def _get_one(self, model: type[M], url_path: str, operation: str) -> M | None:
        status, raw = self._send("GET", url_path, operation=operation, ok_missing=True)
        if status == 404:
            return None
        return self._model(model, operation, self._decode(operation, raw))

    def _write_one(
        self, model: type[M], method: str, url_path: str, operation: str, payload: Any,
    ) -> M:
        _, raw = self._send(method, url_path, operation=operation, payload=payload)
        return self._model(model, operation, self._decode(operation, raw))

    def _list(
        self,
        model: type[M],
        url_path: str,
        operation: str,
        *,
        envelope: str | None = None,
        missing_is_empty: bool = False,
    ) -> list[M]:
        status, raw = self._send("GET", url_path, operation=operation, ok_missing=missing_is_empty)
        if status == 404:
            logger.debug("%s: endpoint not found, treating as empty", operation)
            return []
        return self._model_list(model, operation, self._decode(operation, raw), envelope)

    def _delete(self, url_path: str, operation: str) -> None:
        self._send("DELETE", url_path, operation=operation, ok_missing=True)
