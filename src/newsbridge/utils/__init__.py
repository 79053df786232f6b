"""Stateless helpers shared by the clients and services layers.

Attributes:
    read_bounded_json: Size-capped JSON decoding of an aiohttp response.
    read_bounded_text: Size-capped text decoding of an aiohttp response.
    basic_credentials: Base64 credential encoding for Drupal auth headers.
"""

from .http import (
    DEFAULT_MAX_RESPONSE_SIZE,
    basic_credentials,
    read_bounded_json,
    read_bounded_text,
)


__all__ = [
    "DEFAULT_MAX_RESPONSE_SIZE",
    "basic_credentials",
    "read_bounded_json",
    "read_bounded_text",
]
