"""Services built on [BaseService][newsbridge.core.base_service.BaseService].

Services are the top layer, depending on
[newsbridge.core][newsbridge.core], [newsbridge.clients][newsbridge.clients],
[newsbridge.utils][newsbridge.utils], and [newsbridge.models][newsbridge.models].
Each service implements ``async def run()`` for one cycle of work.

Attributes:
    Connector: Periodic Elasticsearch to Drupal sync of crime news, one pass
        per configured city per cycle.

Examples:
    ```python
    from newsbridge.services import Connector

    connector = Connector.from_yaml("config/connector.yaml")
    async with connector:
        await connector.run()
    ```
"""

from .connector import (
    CityConfig,
    Connector,
    ConnectorConfig,
)


__all__ = [
    "CityConfig",
    "Connector",
    "ConnectorConfig",
]
