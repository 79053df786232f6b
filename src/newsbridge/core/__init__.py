"""Core layer providing the foundation for the connector service.

Depends only on ``newsbridge.models`` and is depended upon by
``newsbridge.clients`` and ``newsbridge.services``.

Attributes:
    BaseService: Abstract generic base class with lifecycle management
        ([run()][newsbridge.core.base_service.BaseService.run] /
        [run_forever()][newsbridge.core.base_service.BaseService.run_forever] /
        shutdown), YAML/dict factories, and Prometheus metrics.
    DuplicateLedger: Redis-backed record of delivered article ids.
        See [DuplicateLedger][newsbridge.core.ledger.DuplicateLedger].
    DeliveryThrottle: Process-wide token bucket for outbound deliveries.
    Watermark: Lock-guarded "last checked" instant shared by all cities.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    ConfigurationError,
    LedgerError,
    NewsBridgeError,
    PublishError,
    SourceQueryError,
    ThrottleCancelledError,
)
from .ledger import DuplicateLedger, RedisConfig
from .logger import JsonFormatter, Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    ARTICLES_TOTAL,
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .throttle import DeliveryThrottle
from .watermark import Watermark
from .yaml import load_yaml


__all__ = [
    "ARTICLES_TOTAL",
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "DeliveryThrottle",
    "DuplicateLedger",
    "JsonFormatter",
    "LedgerError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NewsBridgeError",
    "PublishError",
    "RedisConfig",
    "SourceQueryError",
    "StructuredFormatter",
    "ThrottleCancelledError",
    "Watermark",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
