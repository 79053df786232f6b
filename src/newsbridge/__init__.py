r"""newsbridge -- Elasticsearch to Drupal crime news connector.

A periodic service searches each configured city's Elasticsearch index for
crime-related articles, drops irrelevant and already delivered ones, and
publishes the rest as Drupal JSON:API nodes under a global rate limit.

Imports flow strictly downward:

```text
          services          Sync orchestration (Connector)
         /        \
      core      clients     Lifecycle, ledger, throttle / Elasticsearch, Drupal
         \        /
      utils  models         HTTP helpers / frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses and constants. Zero I/O.
    core: Base service, exceptions, logging, metrics, duplicate ledger,
        delivery throttle, watermark.
    clients: Elasticsearch source query and Drupal publisher over aiohttp.
    utils: Bounded HTTP response readers and credential helpers.
    services: The connector service.

Note:
    Top-level imports (``from newsbridge import Connector``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("newsbridge")

__all__ = [
    "Article",
    "BaseService",
    "CityConfig",
    "ConfigT",
    "Connector",
    "ConnectorConfig",
    "DeliveryThrottle",
    "DuplicateLedger",
    "Logger",
    "Publisher",
    "SourceQuery",
    "Watermark",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("newsbridge.core", "BaseService"),
    "ConfigT": ("newsbridge.core", "ConfigT"),
    "DeliveryThrottle": ("newsbridge.core", "DeliveryThrottle"),
    "DuplicateLedger": ("newsbridge.core", "DuplicateLedger"),
    "Logger": ("newsbridge.core", "Logger"),
    "Watermark": ("newsbridge.core", "Watermark"),
    "Article": ("newsbridge.models", "Article"),
    "Publisher": ("newsbridge.clients", "Publisher"),
    "SourceQuery": ("newsbridge.clients", "SourceQuery"),
    "CityConfig": ("newsbridge.services", "CityConfig"),
    "Connector": ("newsbridge.services", "Connector"),
    "ConnectorConfig": ("newsbridge.services", "ConnectorConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'newsbridge' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
