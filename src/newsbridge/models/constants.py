"""Shared constants for the models layer.

See Also:
    [BaseService][newsbridge.core.base_service.BaseService]: Uses
        [ServiceName][newsbridge.models.constants.ServiceName] as the logger
        name and the ``service`` metrics label.
"""

from __future__ import annotations

from enum import StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        CONNECTOR: The Elasticsearch to Drupal sync loop
            ([Connector][newsbridge.services.connector.Connector]).
    """

    CONNECTOR = "connector"


#: Redis key namespace for delivered article ids.
LEDGER_KEY_PREFIX = "posted:article:"

#: One year, the default lifetime of a ledger entry.
DEFAULT_DEDUP_TTL_SECONDS = 365 * 24 * 60 * 60

#: Keywords used when the configuration does not list any.
DEFAULT_CRIME_KEYWORDS: tuple[str, ...] = (
    "police",
    "arrest",
    "charged",
    "court",
    "murder",
    "assault",
    "robbery",
    "theft",
    "crime",
    "criminal",
    "suspect",
    "victim",
    "investigation",
    "warrant",
    "sentence",
)
