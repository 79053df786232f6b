"""Connector service utility functions.

Pure helpers for the per-city pass: the authoritative relevance check and
the counters each city reports.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from newsbridge.models import Article


def is_relevant(article: Article, keywords: Iterable[str]) -> bool:
    """Return True if any keyword occurs in the article's title or body.

    Matching is a case-insensitive substring test over ``title + " " + body``,
    so ``"rape"`` also matches ``"therapeutic"``. An empty keyword list never
    matches. Empty keyword strings are ignored.

    Args:
        article: Candidate article.
        keywords: Relevance keywords, in any case.
    """
    text = f"{article.title} {article.body}".lower()
    return any(keyword and keyword.lower() in text for keyword in keywords)


@dataclass(slots=True)
class CityResult:
    """Outcome counters of one city's pass.

    Attributes:
        city: City name.
        found: Articles returned by the search.
        posted: Articles delivered (including those whose ledger mark failed).
        skipped: Irrelevant or already delivered articles.
        failed: Articles Drupal rejected.
        error: Why the pass ended early (fetch failure or shutdown), if it did.
    """

    city: str
    found: int = 0
    posted: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the pass ran to completion."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Return the counters as logging fields."""
        fields: dict[str, Any] = {
            "city": self.city,
            "found": self.found,
            "posted": self.posted,
            "skipped": self.skipped,
            "failed": self.failed,
        }
        if self.error is not None:
            fields["error"] = self.error
        return fields
