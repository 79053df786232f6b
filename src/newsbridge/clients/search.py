"""
Elasticsearch source query for candidate articles.

[SourceQuery][newsbridge.clients.search.SourceQuery] issues one ``_search``
request per city against the city's index and turns the hits into
[Article][newsbridge.models.article.Article] objects. The query combines:

* a ``multi_match`` over the crime keywords (title weighted ``^2``), which
  only narrows the candidate set; the connector re-checks every article with
  [is_relevant()][newsbridge.services.connector.utils.is_relevant];
* an optional ``range`` clause ``published_at >= since``, present only when
  a ``since`` instant is given (a disabled lookback searches the whole index);
* a result cap and a newest-first sort, so truncation drops the oldest hits.

When the keyword query reports zero total hits, a diagnostic ``match_all``
probe tells "empty index" apart from "no matches". The probe only logs; it
never changes what [find()][newsbridge.clients.search.SourceQuery.find]
returns or raises.

Examples:
    ```python
    async with SourceQuery(ElasticsearchConfig(url="http://es:9200"), keywords=["arrest"]) as q:
        articles = await q.find(city, since=None)
    ```
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel, Field, SecretStr

from newsbridge.core.exceptions import SourceQueryError
from newsbridge.core.logger import Logger
from newsbridge.models import Article
from newsbridge.utils.http import DEFAULT_MAX_RESPONSE_SIZE, read_bounded_json


if TYPE_CHECKING:
    from newsbridge.services.connector.configs import CityConfig


#: Date field used for the window filter and the sort.
PUBLISHED_FIELD = "published_at"

#: Fields searched by the keyword pre-filter; the title counts double.
SEARCH_FIELDS: tuple[str, ...] = ("title^2", "content")


class ElasticsearchConfig(BaseModel):
    """Connection parameters for the Elasticsearch cluster."""

    url: str = Field(min_length=1, description="Base URL, e.g. http://localhost:9200")
    username: str = Field(default="", description="Basic auth user (empty = no auth)")
    password: SecretStr = Field(default=SecretStr(""), description="Basic auth password")
    timeout: float = Field(default=30.0, gt=0.0, description="Request timeout in seconds")
    max_response_size: int = Field(
        default=DEFAULT_MAX_RESPONSE_SIZE, ge=1024, description="Maximum response body bytes"
    )


class SourceQuery:
    """Searches a city's index for recent keyword-matching articles.

    Attributes:
        keywords: Keywords joined into the ``multi_match`` query.
        size: Maximum number of hits returned per search.
    """

    def __init__(
        self,
        config: ElasticsearchConfig,
        *,
        keywords: Sequence[str],
        size: int = 100,
        session: aiohttp.ClientSession | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self.keywords = list(keywords)
        self.size = size
        self._session = session
        self._owns_session = session is None
        self._logger = logger or Logger("source_query")

    async def open(self) -> None:
        """Create the HTTP session if one was not injected."""
        if self._session is None:
            auth = None
            if self._config.username:
                auth = aiohttp.BasicAuth(
                    self._config.username, self._config.password.get_secret_value()
                )
            self._session = aiohttp.ClientSession(
                auth=auth, timeout=aiohttp.ClientTimeout(total=self._config.timeout)
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

    def build_query(self, since: datetime.datetime | None) -> dict[str, Any]:
        """Build the ``_search`` request body.

        Args:
            since: Lower bound on ``published_at``; ``None`` omits the range
                clause entirely.
        """
        must: list[dict[str, Any]] = []
        if since is not None:
            must.append(
                {"range": {PUBLISHED_FIELD: {"gte": since.isoformat(timespec="seconds")}}}
            )
        must.append(
            {
                "multi_match": {
                    "query": " ".join(self.keywords),
                    "fields": list(SEARCH_FIELDS),
                    "type": "best_fields",
                    "operator": "or",
                }
            }
        )
        return {
            "query": {"bool": {"must": must}},
            "size": self.size,
            "sort": [{PUBLISHED_FIELD: {"order": "desc"}}],
            "track_total_hits": True,
        }

    async def find(self, city: CityConfig, since: datetime.datetime | None) -> list[Article]:
        """Return the newest keyword-matching articles in ``city``'s index.

        Args:
            city: City whose index is searched.
            since: Watermark to filter on, or ``None`` to search everything.

        Raises:
            SourceQueryError: On transport failure, a non-2xx response, or an
                undecodable body.
        """
        index = city.index_name
        result = await self._search(index, self.build_query(since))

        hits_obj = result.get("hits") or {}
        total = _total_hits(hits_obj)
        articles: list[Article] = []
        for hit in hits_obj.get("hits") or []:
            try:
                articles.append(Article.from_hit(hit))
            except (TypeError, ValueError) as e:
                hit_id = hit.get("_id") if isinstance(hit, dict) else None
                self._logger.warning(
                    "hit_skipped", city=city.name, index=index, hit_id=hit_id, error=str(e)
                )

        self._logger.info(
            "articles_found", city=city.name, index=index, returned=len(articles), total=total
        )

        if total == 0:
            await self._probe_index(city.name, index)

        return articles

    async def _search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        if self._session is None:
            await self.open()
        assert self._session is not None

        url = f"{self._config.url.rstrip('/')}/{quote(index, safe='')}/_search"
        try:
            async with self._session.post(url, json=body) as resp:
                if resp.status >= 300:
                    raise await self._error_from_response(resp, index)
                data = await read_bounded_json(resp, self._config.max_response_size)
        except SourceQueryError:
            raise
        except (aiohttp.ClientError, TimeoutError, OSError) as e:
            raise SourceQueryError(f"search error: {e}", index=index) from e
        except ValueError as e:
            raise SourceQueryError(f"decode response: {e}", index=index) from e

        if not isinstance(data, dict):
            raise SourceQueryError(
                f"decode response: expected object, got {type(data).__name__}", index=index
            )
        return data

    async def _error_from_response(
        self, resp: aiohttp.ClientResponse, index: str
    ) -> SourceQueryError:
        try:
            payload = await read_bounded_json(resp, self._config.max_response_size)
        except ValueError:
            return SourceQueryError(
                f"elasticsearch error response: {resp.status} {resp.reason}",
                index=index,
                status=resp.status,
            )
        return SourceQueryError(
            f"elasticsearch error: {payload}", index=index, status=resp.status
        )

    async def _probe_index(self, city: str, index: str) -> None:
        """Log whether ``index`` is empty or just has no keyword matches."""
        try:
            result = await self._search(index, {"query": {"match_all": {}}, "size": 1})
        except SourceQueryError as e:
            self._logger.debug("index_probe_failed", city=city, index=index, error=str(e))
            return

        documents = _total_hits(result.get("hits") or {})
        if documents == 0:
            self._logger.warning("index_empty", city=city, index=index)
        else:
            self._logger.info(
                "no_keyword_matches", city=city, index=index, documents=documents
            )


def _total_hits(hits: dict[str, Any]) -> int:
    """Read ``hits.total`` in both the object (7.x+) and integer (6.x) forms."""
    total = hits.get("total")
    if isinstance(total, dict):
        total = total.get("value")
    try:
        return int(total or 0)
    except (TypeError, ValueError):
        return 0
