"""Connector service package.

Re-exports all public symbols for convenient imports::

    from newsbridge.services.connector import Connector, ConnectorConfig
"""

from .configs import CityConfig, ConnectorConfig, SyncConfig
from .service import Connector
from .utils import CityResult, is_relevant


__all__ = [
    "CityConfig",
    "CityResult",
    "Connector",
    "ConnectorConfig",
    "SyncConfig",
    "is_relevant",
]
