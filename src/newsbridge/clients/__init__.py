"""Wire clients for the connector's external systems.

Sits between ``core`` and ``services``: clients depend on ``core``,
``models`` and ``utils``, and the connector composes them.

Attributes:
    SourceQuery: Keyword/time-window search against a city's Elasticsearch
        index. See [SourceQuery][newsbridge.clients.search.SourceQuery].
    Publisher: Node creation (and read-only node inspection) through the
        Drupal JSON:API. See [Publisher][newsbridge.clients.drupal.Publisher].
"""

from .drupal import DrupalConfig, Publisher, build_node_document, bundle_for
from .search import ElasticsearchConfig, SourceQuery


__all__ = [
    "DrupalConfig",
    "ElasticsearchConfig",
    "Publisher",
    "SourceQuery",
    "build_node_document",
    "bundle_for",
]
