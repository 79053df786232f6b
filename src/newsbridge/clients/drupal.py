"""
Drupal JSON:API publisher.

[Publisher][newsbridge.clients.drupal.Publisher] creates one Drupal node per
article with a ``field_group`` relationship to the city's group, and offers
two read-only calls used by the ``nodes`` CLI command.

Every request carries the REST API Authentication headers:

* ``API-KEY``: ``base64(username:token)`` (``base64(token)`` without a user),
* ``Authorization``: the same value with the ``Basic`` scheme,
* ``AUTH-METHOD``: the configured application id, when set.

Before each creation request a CSRF token is fetched from
``/session/token``. Failing to get one is only a warning: the creation goes
ahead without ``X-CSRF-Token`` and Drupal's own answer decides the outcome.

Responses with status >= 400 raise
[PublishError][newsbridge.core.exceptions.PublishError] using the first
JSON:API error object when the body has one, or the status line otherwise.
A success response must decode to a document with ``data.id``; anything else
is also a ``PublishError`` even though the node may exist.
"""

from __future__ import annotations

import time
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

import aiohttp
from pydantic import BaseModel, Field, SecretStr

from newsbridge.core.exceptions import PublishError
from newsbridge.core.logger import Logger
from newsbridge.utils.http import (
    DEFAULT_MAX_RESPONSE_SIZE,
    basic_credentials,
    read_bounded_json,
    read_bounded_text,
)


if TYPE_CHECKING:
    from newsbridge.models import Article
    from newsbridge.services.connector.configs import CityConfig


JSONAPI_MEDIA_TYPE = "application/vnd.api+json"
CSRF_TOKEN_PATH = "/session/token"
_NODE_TYPE_PREFIX = "node--"


class DrupalConfig(BaseModel):
    """Connection and credential settings for the Drupal site."""

    url: str = Field(min_length=1, description="Site base URL, e.g. https://news.example.org")
    username: str = Field(default="", description="REST API Authentication user")
    token: SecretStr = Field(description="API key/token")
    auth_method: str = Field(default="", description="AUTH-METHOD header value")
    skip_tls_verify: bool = Field(
        default=False, description="Disable TLS certificate checks (development only)"
    )
    timeout: float = Field(default=30.0, gt=0.0, description="Request timeout in seconds")


def bundle_for(content_type: str) -> str:
    """Return the JSON:API bundle segment for a node type (``node--article`` -> ``article``)."""
    if content_type.startswith(_NODE_TYPE_PREFIX):
        return content_type[len(_NODE_TYPE_PREFIX) :]
    return content_type


def build_node_document(
    article: Article, group_id: str, content_type: str, group_type: str
) -> dict[str, Any]:
    """Map an article onto a JSON:API node creation document."""
    attributes: dict[str, Any] = {"title": article.title}
    if article.body:
        attributes["body"] = article.body
    return {
        "data": {
            "type": content_type,
            "attributes": attributes,
            "relationships": {
                "field_group": {"data": {"type": group_type, "id": group_id}},
            },
        }
    }


class Publisher:
    """Delivers articles to Drupal as nodes."""

    def __init__(
        self,
        config: DrupalConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._base_url = config.url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._logger = logger or Logger("publisher")
        if config.skip_tls_verify:
            self._logger.warning(
                "tls_verification_disabled", base_url=self._base_url, component="drupal_client"
            )

    async def open(self) -> None:
        """Create the HTTP session if one was not injected."""
        if self._session is None:
            connector = aiohttp.TCPConnector(ssl=False if self._config.skip_tls_verify else True)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            )
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this instance created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            await self.open()
        assert self._session is not None
        return self._session

    def auth_headers(self) -> dict[str, str]:
        """Return the authentication headers attached to every request."""
        credentials = basic_credentials(
            self._config.username, self._config.token.get_secret_value()
        )
        headers = {"API-KEY": credentials, "Authorization": f"Basic {credentials}"}
        if self._config.auth_method:
            headers["AUTH-METHOD"] = self._config.auth_method
        return headers

    def endpoint(self, content_type: str) -> str:
        """Return the JSON:API collection URL for ``content_type``."""
        return f"{self._base_url}/jsonapi/node/{bundle_for(content_type)}"

    async def fetch_csrf_token(self) -> str:
        """Fetch a CSRF token from ``/session/token``.

        Raises:
            PublishError: If the request fails or does not return 200.
        """
        session = await self._get_session()
        headers = {"Accept": "application/json", **self.auth_headers()}
        try:
            async with session.get(f"{self._base_url}{CSRF_TOKEN_PATH}", headers=headers) as resp:
                if resp.status != 200:
                    raise PublishError(
                        f"CSRF token request failed: {resp.status} {resp.reason}",
                        status=resp.status,
                    )
                return (await read_bounded_text(resp, 64 * 1024)).strip()
        except (aiohttp.ClientError, TimeoutError, OSError, ValueError) as e:
            raise PublishError(f"fetch CSRF token: {e}") from e

    async def send(
        self,
        article: Article,
        city: CityConfig,
        content_type: str,
        group_type: str,
    ) -> str:
        """Create a node for ``article`` in ``city``'s group.

        Returns:
            The id of the created node.

        Raises:
            PublishError: On transport failure, a status >= 400, or a success
                body without a node id.
        """
        started = time.monotonic()
        endpoint = self.endpoint(content_type)
        document = build_node_document(article, city.group_id, content_type, group_type)
        log = self._logger.bind(endpoint=endpoint, article_id=article.id)

        headers = {
            "Content-Type": JSONAPI_MEDIA_TYPE,
            "Accept": JSONAPI_MEDIA_TYPE,
            **self.auth_headers(),
        }
        try:
            headers["X-CSRF-Token"] = await self.fetch_csrf_token()
        except PublishError as e:
            log.warning("csrf_token_unavailable", error=str(e))

        log.debug(
            "node_create_started",
            title=article.title,
            content_type=content_type,
            group_type=group_type,
            group_id=city.group_id,
            url=article.url,
        )

        session = await self._get_session()
        try:
            async with session.post(endpoint, json=document, headers=headers) as resp:
                status = resp.status
                if status >= 400:
                    raise await self._error_from_response(resp)
                try:
                    payload = await read_bounded_json(resp, DEFAULT_MAX_RESPONSE_SIZE)
                except ValueError as e:
                    raise PublishError(f"decode response: {e}", status=status) from e
        except PublishError as e:
            log.error(
                "node_create_failed",
                title=article.title,
                status=e.status,
                error=str(e),
                duration=round(time.monotonic() - started, 3),
            )
            raise
        except (aiohttp.ClientError, TimeoutError, OSError) as e:
            log.error(
                "node_create_failed",
                title=article.title,
                error=str(e),
                duration=round(time.monotonic() - started, 3),
            )
            raise PublishError(f"http request: {e}") from e

        node_id = _created_id(payload)
        if node_id is None:
            log.error("node_create_unconfirmed", title=article.title, status=status)
            raise PublishError("decode response: missing data.id", status=status)

        log.info(
            "node_created",
            title=article.title,
            node_id=node_id,
            status=status,
            duration=round(time.monotonic() - started, 3),
        )
        return node_id

    async def list_nodes(self, limit: int = 5, content_type: str = "node--article") -> Any:
        """Return the JSON:API listing of up to ``limit`` nodes of ``content_type``."""
        return await self._get_json(self.endpoint(content_type), params={"page[limit]": limit})

    async def get_node(self, node_id: str, content_type: str = "node--article") -> Any:
        """Return the JSON:API document of a single node."""
        return await self._get_json(f"{self.endpoint(content_type)}/{node_id}")

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        session = await self._get_session()
        headers = {"Accept": JSONAPI_MEDIA_TYPE, **self.auth_headers()}
        try:
            async with session.get(url, params=params, headers=headers) as resp:
                if resp.status >= 400:
                    raise await self._error_from_response(resp)
                return await read_bounded_json(resp, DEFAULT_MAX_RESPONSE_SIZE)
        except PublishError:
            raise
        except (aiohttp.ClientError, TimeoutError, OSError, ValueError) as e:
            raise PublishError(f"GET {url}: {e}") from e

    async def _error_from_response(self, resp: aiohttp.ClientResponse) -> PublishError:
        """Turn an error response into a ``PublishError`` with the best message available."""
        try:
            payload = await read_bounded_json(resp, DEFAULT_MAX_RESPONSE_SIZE)
        except ValueError:
            payload = None

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            first = errors[0]
            return PublishError(
                f"drupal API error ({resp.status}): {first.get('title', '')} - "
                f"{first.get('detail', '')}",
                status=resp.status,
            )
        return PublishError(f"drupal API error: {resp.status} {resp.reason}", status=resp.status)


def _created_id(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    node_id = data.get("id")
    if not isinstance(node_id, str) or not node_id:
        return None
    return node_id
