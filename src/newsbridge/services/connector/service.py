"""Connector service for newsbridge.

Moves crime news from per-city Elasticsearch indexes into Drupal. Each cycle
walks the configured cities in order and, for every city:

1. **Fetch** -- [SourceQuery.find()][newsbridge.clients.search.SourceQuery.find]
   returns the newest keyword-matching articles, limited to those published
   since the shared [Watermark][newsbridge.core.watermark.Watermark] when a
   lookback window is configured.
2. **Filter** -- [is_relevant()][newsbridge.services.connector.utils.is_relevant]
   re-checks every article against the keyword list.
3. **Deduplicate** -- [DuplicateLedger.has_seen()][newsbridge.core.ledger.DuplicateLedger.has_seen]
   skips articles already delivered.
4. **Throttle** -- [DeliveryThrottle.acquire()][newsbridge.core.throttle.DeliveryThrottle.acquire]
   waits for the global rate budget.
5. **Publish** -- [Publisher.send()][newsbridge.clients.drupal.Publisher.send]
   creates the Drupal node in the city's group.
6. **Record** -- [DuplicateLedger.mark_seen()][newsbridge.core.ledger.DuplicateLedger.mark_seen]
   remembers the delivery.

Failures stay as small as possible: an irrelevant, duplicate, or rejected
article only affects itself; a failed search or a shutdown during the
throttle wait ends that city's pass; nothing ends the cycle early except a
shutdown request, and the watermark advances at the end of every cycle no
matter what happened to the cities.

See Also:
    [ConnectorConfig][newsbridge.services.connector.ConnectorConfig]:
        Configuration model for this service.
    [BaseService][newsbridge.core.base_service.BaseService]: Abstract base
        class providing ``run()``, ``run_forever()``, and ``from_yaml()``.

Examples:
    ```python
    from newsbridge.services import Connector

    connector = Connector.from_yaml("config/connector.yaml")

    async with connector:
        await connector.run_forever()
    ```
"""

from __future__ import annotations

import contextlib
import datetime
import time
from typing import TYPE_CHECKING, ClassVar

from newsbridge.clients.drupal import Publisher
from newsbridge.clients.search import SourceQuery
from newsbridge.core.base_service import BaseService
from newsbridge.core.exceptions import (
    LedgerError,
    PublishError,
    SourceQueryError,
    ThrottleCancelledError,
)
from newsbridge.core.ledger import DuplicateLedger
from newsbridge.core.metrics import ARTICLES_TOTAL
from newsbridge.core.throttle import DeliveryThrottle
from newsbridge.core.watermark import Watermark
from newsbridge.models.constants import ServiceName

from .configs import CityConfig, ConnectorConfig
from .utils import CityResult, is_relevant


if TYPE_CHECKING:
    from types import TracebackType

    from newsbridge.core.logger import Logger
    from newsbridge.models import Article


class Connector(BaseService[ConnectorConfig]):
    """Elasticsearch to Drupal sync service.

    Collaborators are built from the configuration unless injected, which
    is how tests and one-off tools supply their own.

    Lifecycle:
        1. ``__aenter__``: mark the service running, then connect the ledger
           (a failure here is fatal) and open the HTTP sessions.
        2. ``run()``: one pass over every city, then advance the watermark.
        3. ``__aexit__``: close sessions and the Redis client.

    See Also:
        [ConnectorConfig][newsbridge.services.connector.ConnectorConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.CONNECTOR
    CONFIG_CLASS: ClassVar[type[ConnectorConfig]] = ConnectorConfig

    def __init__(
        self,
        config: ConnectorConfig | None = None,
        *,
        source: SourceQuery | None = None,
        publisher: Publisher | None = None,
        ledger: DuplicateLedger | None = None,
        throttle: DeliveryThrottle | None = None,
        watermark: Watermark | None = None,
    ) -> None:
        super().__init__(config=config)
        self._config: ConnectorConfig
        settings = self._config.service

        self._source = source or SourceQuery(
            self._config.elasticsearch,
            keywords=settings.crime_keywords,
            size=settings.result_size,
        )
        self._publisher = publisher or Publisher(self._config.drupal)
        self._ledger = ledger or DuplicateLedger.from_config(
            self._config.redis, ttl=settings.dedup_ttl
        )
        self._throttle = throttle or DeliveryThrottle(settings.rate_limit_rps, settings.burst)
        self._watermark = watermark or Watermark.from_lookback(
            datetime.timedelta(hours=settings.lookback_hours)
        )
        self._resources: contextlib.AsyncExitStack | None = None

    @property
    def watermark(self) -> Watermark:
        """The shared "last checked" instant."""
        return self._watermark

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Connector:
        # Clear the shutdown event first: a shutdown requested while connecting must stay set.
        await super().__aenter__()
        try:
            async with contextlib.AsyncExitStack() as stack:
                await stack.enter_async_context(self._ledger)
                await stack.enter_async_context(self._source)
                await stack.enter_async_context(self._publisher)
                self._resources = stack.pop_all()
        except BaseException:
            self._shutdown_event.set()
            raise

        settings = self._config.service
        self._logger.info(
            "connector_ready",
            cities=[city.name for city in self._config.cities],
            rate_limit_rps=settings.rate_limit_rps,
            burst=self._throttle.burst,
            lookback_hours=settings.lookback_hours,
            keywords=len(settings.crime_keywords),
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._resources is not None:
            resources, self._resources = self._resources, None
            await resources.aclose()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Execute one sync cycle across all configured cities.

        Delegates the work to ``sync`` and logs the cycle totals.
        """
        started = time.monotonic()
        self._logger.info(
            "sync_started",
            cities=len(self._config.cities),
            since=_isoformat(self._since()),
        )
        results = await self.sync()
        self._logger.info(
            "sync_completed",
            cities=len(results),
            posted=sum(r.posted for r in results),
            skipped=sum(r.skipped for r in results),
            failed=sum(r.failed for r in results),
            city_errors=sum(1 for r in results if not r.ok),
            duration=round(time.monotonic() - started, 2),
        )

    async def sync(self) -> list[CityResult]:
        """Process every city in configured order, then advance the watermark.

        No new city starts once shutdown has been requested. The watermark
        advances even when a city fails or the cycle is interrupted.

        Returns:
            One [CityResult][newsbridge.services.connector.utils.CityResult]
            per city that was started.
        """
        results: list[CityResult] = []
        try:
            for city in self._config.cities:
                if not self.is_running:
                    self._logger.info("sync_interrupted", remaining_city=city.name)
                    break
                results.append(await self.process_city(city))
        finally:
            mark = self._watermark.advance()
            self.set_gauge("watermark_timestamp", mark.timestamp())
            self._logger.debug("watermark_advanced", watermark=mark.isoformat())
        return results

    async def process_city(self, city: CityConfig) -> CityResult:
        """Run the fetch, filter, deduplicate, throttle, publish pass for one city.

        A search failure, a shutdown during the throttle wait, or any other
        unexpected error ends the pass with ``error`` set and the counts
        gathered so far kept. Per-article problems are only counted.

        Args:
            city: The city to process.

        Returns:
            The city's counters, also logged as ``city_completed``.
        """
        result = CityResult(city=city.name)
        log = self._logger.bind(city=city.name)
        since = self._since()
        log.debug("city_started", index=city.index_name, since=_isoformat(since))

        try:
            articles = await self._source.find(city, since)
            result.found = len(articles)
            for article in articles:
                await self._process_article(article, city, result, log)
        except SourceQueryError as e:
            result.error = str(e)
            log.error("fetch_failed", index=city.index_name, error=str(e), status=e.status)
        except ThrottleCancelledError as e:
            result.error = str(e)
            log.warning("city_cancelled", error=str(e))
        except Exception as e:  # Intentionally broad: one city must not stop the others
            result.error = str(e) or type(e).__name__
            log.error("city_failed", error=str(e), error_type=type(e).__name__)
        finally:
            self._record(result)

        if result.ok:
            log.info("city_completed", **result.to_dict())
        else:
            log.warning("city_completed", **result.to_dict())
        return result

    async def _process_article(
        self, article: Article, city: CityConfig, result: CityResult, log: Logger
    ) -> None:
        settings = self._config.service

        if not is_relevant(article, settings.crime_keywords):
            result.skipped += 1
            log.debug("article_irrelevant", article_id=article.id, title=article.title)
            return

        if await self._ledger.has_seen(article.id):
            result.skipped += 1
            log.debug("article_duplicate", article_id=article.id, title=article.title)
            return

        await self._throttle.acquire(self.shutdown_event)

        try:
            node_id = await self._publisher.send(
                article, city, settings.content_type, settings.group_type
            )
        except PublishError as e:
            result.failed += 1
            log.warning(
                "article_failed", article_id=article.id, title=article.title, error=str(e)
            )
            return

        try:
            await self._ledger.mark_seen(article.id)
        except LedgerError as e:
            log.warning("article_mark_failed", article_id=article.id, error=str(e))

        result.posted += 1
        log.info(
            "article_posted",
            article_id=article.id,
            node_id=node_id,
            title=article.title,
            url=article.url,
        )

    def _since(self) -> datetime.datetime | None:
        """Window start for searches, or ``None`` when lookback is disabled."""
        if self._config.service.lookback_hours > 0:
            return self._watermark.get()
        return None

    def _record(self, result: CityResult) -> None:
        """Push a city's counters to the service metrics."""
        if not result.ok:
            self.inc_counter("city_errors")
        for outcome in ("posted", "skipped", "failed"):
            count = getattr(result, outcome)
            if not count:
                continue
            self.inc_counter(f"articles_{outcome}", count)
            if self._config.metrics.enabled:
                ARTICLES_TOTAL.labels(
                    service=self.SERVICE_NAME, city=result.city, outcome=outcome
                ).inc(count)


def _isoformat(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
