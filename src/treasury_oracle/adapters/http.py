"""Blocking HTTP helpers run off the event loop."""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any

import requests

JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}

_rpc_ids = itertools.count(1)


class HttpStatusError(Exception):
    """Raised when a provider answers with a non-2xx status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"HTTP {status_code} from {url}")
        self.url = url
        self.status_code = status_code


def _decode(response: requests.Response) -> Any:
    if not response.ok:
        raise HttpStatusError(response.url, response.status_code)
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise ValueError(f"Invalid JSON from {response.url}") from e


async def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = 15.0,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Raises:
        HttpStatusError: On a non-2xx status.
        ValueError: If the body is not JSON.
        requests.exceptions.RequestException: On transport failure.
    """
    response = await asyncio.to_thread(
        lambda: requests.get(
            url, params=params, headers=headers or JSON_HEADERS, timeout=timeout
        )
    )
    return _decode(response)


async def post_json(
    url: str,
    body: dict[str, Any],
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 15.0,
) -> Any:
    """POST a JSON body to ``url`` and decode the JSON answer."""
    response = await asyncio.to_thread(
        lambda: requests.post(
            url, json=body, headers=headers or JSON_HEADERS, timeout=timeout
        )
    )
    return _decode(response)


def json_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 request body."""
    return {"jsonrpc": "2.0", "id": next(_rpc_ids), "method": method, "params": params}
