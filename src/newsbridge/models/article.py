"""Article model: one document pulled from a city's search index.

An [Article][newsbridge.models.article.Article] is immutable and lives for a
single processing pass. Its ``id`` is the key of the duplicate ledger, so it
must be stable across fetches of the same document: the document's own
``id`` field wins, and the Elasticsearch ``_id`` is the fallback.

Field names in indexed documents are not uniform across crawlers.
[Article.from_hit()][newsbridge.models.article.Article.from_hit] maps the
known aliases onto the model so nothing downstream needs to care.

See Also:
    [SourceQuery][newsbridge.clients.search.SourceQuery]: Builds articles
        from search hits.
    [Publisher][newsbridge.clients.drupal.Publisher]: Turns articles into
        Drupal nodes.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ._validation import (
    coerce_text,
    parse_timestamp,
    validate_aware_datetime,
    validate_str_no_null,
    validate_str_not_empty,
)


_BODY_FIELDS = ("content", "body", "text")
_URL_FIELDS = ("url", "link", "canonical_url")
_PUBLISHED_FIELDS = ("published_at", "published", "@timestamp")
_SOURCE_FIELDS = ("source", "origin", "site")


def _first(doc: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = doc.get(name)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True, slots=True)
class Article:
    """A news article fetched from Elasticsearch.

    Attributes:
        id: Stable external identifier, used as the ledger key.
        title: Headline.
        body: Article text (may be empty).
        url: Canonical URL of the original article.
        published_at: Publication instant (UTC), or ``None`` if unknown.
        source: Origin label (publisher or crawler name).

    Examples:
        ```python
        article = Article.from_hit({
            "_id": "es-1",
            "_source": {"title": "Police arrest suspect", "content": "..."},
        })
        article.id  # 'es-1'
        ```
    """

    id: str
    title: str = ""
    body: str = ""
    url: str = ""
    published_at: datetime.datetime | None = None
    source: str = ""

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_no_null(self.title, "title")
        validate_str_no_null(self.body, "body")
        validate_str_no_null(self.url, "url")
        validate_str_no_null(self.source, "source")
        validate_aware_datetime(self.published_at, "published_at")

    @classmethod
    def from_hit(cls, hit: Mapping[str, Any]) -> Article:
        """Build an article from one element of ``hits.hits``.

        Args:
            hit: Search hit with ``_id`` and ``_source`` keys.

        Raises:
            TypeError: If the hit or its ``_source`` is not a mapping.
            ValueError: If neither the document nor the hit carries an id.
        """
        if not isinstance(hit, Mapping):
            raise TypeError(f"hit must be a mapping, got {type(hit).__name__}")
        doc = hit.get("_source")
        if doc is None:
            doc = {}
        elif not isinstance(doc, Mapping):
            raise TypeError(f"_source must be a mapping, got {type(doc).__name__}")
        article_id = coerce_text(doc.get("id")).strip() or coerce_text(hit.get("_id")).strip()
        return cls(
            id=article_id,
            title=coerce_text(doc.get("title")),
            body=coerce_text(_first(doc, _BODY_FIELDS)),
            url=coerce_text(_first(doc, _URL_FIELDS)),
            published_at=parse_timestamp(_first(doc, _PUBLISHED_FIELDS)),
            source=coerce_text(_first(doc, _SOURCE_FIELDS)),
        )
