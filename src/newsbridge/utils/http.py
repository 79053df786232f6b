"""HTTP utilities for newsbridge.

Provides bounded reads of HTTP response bodies so an oversized Elasticsearch
or Drupal response cannot exhaust memory, plus the Basic credential encoding
shared by the Drupal requests.

Note:
    This module depends only on stdlib and ``aiohttp``. It is importable from
    both ``clients`` and ``services``.

See Also:
    [SourceQuery][newsbridge.clients.search.SourceQuery]: Reads search
        responses with [read_bounded_json][newsbridge.utils.http.read_bounded_json].
    [Publisher][newsbridge.clients.drupal.Publisher]: Reads JSON:API and
        CSRF token responses.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import aiohttp


#: Default cap on response bodies (10 MiB).
DEFAULT_MAX_RESPONSE_SIZE = 10 * 1024 * 1024


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks until EOF or until the size limit is exceeded, which
    also covers chunked transfer-encoding where one read may return fewer
    bytes than requested.

    Raises:
        ValueError: If the response body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_json(
    response: aiohttp.ClientResponse, max_size: int = DEFAULT_MAX_RESPONSE_SIZE
) -> Any:
    """Read and parse a JSON response body with size enforcement.

    Raises:
        ValueError: If the body exceeds *max_size*, or is not valid JSON
            (``json.JSONDecodeError`` is a ``ValueError``).
    """
    body = await _read_bounded(response, max_size)
    return json.loads(body)


async def read_bounded_text(
    response: aiohttp.ClientResponse, max_size: int = DEFAULT_MAX_RESPONSE_SIZE
) -> str:
    """Read a response body as UTF-8 text with size enforcement.

    Raises:
        ValueError: If the body exceeds *max_size* or is not valid UTF-8.
    """
    body = await _read_bounded(response, max_size)
    return body.decode("utf-8")


def basic_credentials(username: str, secret: str) -> str:
    """Return ``base64(username:secret)``, or ``base64(secret)`` without a username."""
    raw = f"{username}:{secret}" if username else secret
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")
