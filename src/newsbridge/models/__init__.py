"""Pure data models. No I/O; depends only on the standard library.

Attributes:
    Article: Immutable article fetched from a city's search index.
    ServiceName: Service identifiers for logging and metrics.
"""

from .article import Article
from .constants import (
    DEFAULT_CRIME_KEYWORDS,
    DEFAULT_DEDUP_TTL_SECONDS,
    LEDGER_KEY_PREFIX,
    ServiceName,
)


__all__ = [
    "DEFAULT_CRIME_KEYWORDS",
    "DEFAULT_DEDUP_TTL_SECONDS",
    "LEDGER_KEY_PREFIX",
    "Article",
    "ServiceName",
]
