"""Export pipeline.

Wires sources, collectors, the worker pool and the output sinks:

1. Validate configuration (before any file is created)
2. Build one rate limiter per API and a shared RequestStats
3. Run the collector (listings or promotions crawl, competitor worker pool)
4. Stream rows into the CSV sink, or buffer them for a single export
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Sequence

import aiohttp

from listing_pipeline.collectors import (
    CompetitorAnalyzer,
    ExpiringPromotionsCollector,
    SellerListingsCollector,
    load_my_listings,
    load_work_items,
)
from listing_pipeline.config import Settings, get_settings
from listing_pipeline.core.types import ExportResult, OutputMode, PoolStats, RunResult
from listing_pipeline.observability.logger import get_logger, log_context
from listing_pipeline.observability.metrics import MetricsCollector, RequestStats
from listing_pipeline.pool import as_work_items, run_pool
from listing_pipeline.pool.worker_pool import Worker
from listing_pipeline.records import COMPETITOR_COLUMNS, LISTING_COLUMNS, PROMOTION_COLUMNS
from listing_pipeline.resilience import RateLimiter, RetryingRequestExecutor
from listing_pipeline.sources import (
    BrowseApiClient,
    MarketingApiClient,
    StaticTokenProvider,
    TradingApiClient,
)
from listing_pipeline.storage import BufferedCsvExporter, IncrementalCsvSink, RowCollector

logger = get_logger(__name__)

STREAM_CHUNK_SIZE = 100


@dataclass
class ExportPipeline:
    """Runs listing, competitor and expiring-discount exports against eBay.

    One pipeline instance owns its limiters, counters and clients; nothing
    is shared between instances.
    """

    settings: Settings = field(default_factory=get_settings)
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    stats: RequestStats = field(default_factory=RequestStats)
    session: aiohttp.ClientSession | None = None
    sleep: Callable[[float], Any] = asyncio.sleep

    _token_provider: StaticTokenProvider | None = field(default=None, init=False, repr=False)
    _trading: TradingApiClient | None = field(default=None, init=False, repr=False)
    _browse: BrowseApiClient | None = field(default=None, init=False, repr=False)
    _marketing: MarketingApiClient | None = field(default=None, init=False, repr=False)

    @property
    def token_provider(self) -> StaticTokenProvider:
        if self._token_provider is None:
            self._token_provider = StaticTokenProvider.from_settings(self.settings)
        return self._token_provider

    @property
    def trading_client(self) -> TradingApiClient:
        """Trading API client (lazy initialization)."""
        if self._trading is None:
            limiter = RateLimiter(rate=self.settings.trading_requests_per_second)
            executor = RetryingRequestExecutor(
                rate_limiter=limiter, stats=self.stats, sleep=self.sleep, source="trading"
            )
            self._trading = TradingApiClient(
                self.token_provider,
                executor,
                self.settings.api_host,
                site_id=self.settings.ebay_site_id,
                app_id=self.settings.ebay_client_id,
                session=self.session,
            )
        return self._trading

    @property
    def browse_client(self) -> BrowseApiClient:
        """Browse API client (lazy initialization)."""
        if self._browse is None:
            limiter = RateLimiter(rate=self.settings.browse_requests_per_second)
            executor = RetryingRequestExecutor(
                rate_limiter=limiter, stats=self.stats, sleep=self.sleep, source="browse"
            )
            self._browse = BrowseApiClient(
                self.token_provider,
                executor,
                self.settings.api_host,
                session=self.session,
            )
        return self._browse

    @property
    def marketing_client(self) -> MarketingApiClient:
        """Marketing API client (lazy initialization)."""
        if self._marketing is None:
            limiter = RateLimiter(rate=self.settings.marketing_requests_per_second)
            executor = RetryingRequestExecutor(
                rate_limiter=limiter, stats=self.stats, sleep=self.sleep, source="marketing"
            )
            self._marketing = MarketingApiClient(
                self.token_provider,
                executor,
                self.settings.api_host,
                marketplace_id=self.settings.promotion_marketplace_id,
                session=self.session,
            )
        return self._marketing

    async def close(self) -> None:
        for client in (self._trading, self._browse, self._marketing):
            if client is not None:
                await client.close()
        self._trading = None
        self._browse = None
        self._marketing = None

    def validate_configuration(self, *names: str) -> None:
        """Raise ConfigurationError when a required value is missing."""
        self.settings.require(*names)
        self.token_provider.validate()

    def should_stream(self, expected_items: int | None, stream: bool | None = None) -> bool:
        """Streaming vs. buffered output.

        An explicit `stream` wins, then the configured output mode; in auto
        mode large or unknown volumes stream.
        """
        if stream is not None:
            return stream
        mode = OutputMode(self.settings.output_mode)
        if mode is OutputMode.CSV:
            return True
        if mode is OutputMode.BUFFERED:
            return False
        return expected_items is None or expected_items > self.settings.stream_threshold

    # ==================== Output ====================

    async def export_rows(
        self,
        items: Iterable[Any],
        worker: Worker,
        columns: Sequence[str],
        path: str | Path,
        stream: bool | None = None,
        concurrency: int | None = None,
    ) -> tuple[PoolStats, ExportResult]:
        """Run `worker` over `items` through the pool and write every row to `path`.

        Both output modes produce the same file contents.
        """
        work_items = as_work_items(items)
        streamed = self.should_stream(len(work_items), stream)
        concurrency = concurrency or self.settings.concurrency

        logger.info(
            f"Writing {'streaming' if streamed else 'buffered'} output to {path}",
            extra={"items": len(work_items), "concurrency": concurrency},
        )

        if streamed:
            async with IncrementalCsvSink(path, columns) as sink:
                pool_stats = await run_pool(
                    work_items, concurrency, worker, on_batch=sink.append_batch
                )
            return pool_stats, sink.result()

        collector = RowCollector()
        pool_stats = await run_pool(work_items, concurrency, worker, on_batch=collector)
        exporter = BufferedCsvExporter(path, columns)
        export = await asyncio.to_thread(exporter.export, collector.rows)
        return pool_stats, export

    async def export_stream(
        self,
        rows: AsyncIterator[Mapping[str, Any]],
        columns: Sequence[str],
        path: str | Path,
        stream: bool | None = None,
        expected_items: int | None = None,
    ) -> ExportResult:
        """Write rows produced by a single crawl."""
        if not self.should_stream(expected_items, stream):
            buffered = [row async for row in rows]
            exporter = BufferedCsvExporter(path, columns)
            return await asyncio.to_thread(exporter.export, buffered)

        chunk: list[Mapping[str, Any]] = []
        async with IncrementalCsvSink(path, columns) as sink:
            async for row in rows:
                chunk.append(row)
                if len(chunk) >= STREAM_CHUNK_SIZE:
                    await sink.append(chunk)
                    chunk = []
            if chunk:
                await sink.append(chunk)
        return sink.result()

    # ==================== Runs ====================

    def default_output(self, prefix: str) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(self.settings.data_dir) / f"{prefix}_{timestamp}.csv"

    async def run_listings_export(
        self,
        output: str | Path | None = None,
        *,
        stream: bool | None = None,
        limit: int | None = None,
    ) -> RunResult:
        """Export the seller's active (and, if few, historical) listings."""
        result = RunResult(command="listings", started_at=datetime.now())
        self.validate_configuration("ebay_client_id")

        path = Path(output) if output else self.default_output("ebay_listings")
        limit = limit or self.settings.max_items
        collector = SellerListingsCollector(self.trading_client, sleep=self.sleep)

        with log_context(source="trading", phase="listings"):
            with self.metrics.collection("listings") as m:
                try:
                    with self.metrics.phase("crawl+export"):
                        rows = _take(collector.collect(), limit)
                        export = await self.export_stream(rows, LISTING_COLUMNS, path, stream)
                except Exception as e:
                    result.errors.append(str(e))
                    logger.error(f"Listings export failed: {e}")
                    raise
                finally:
                    await self.close()

                m.total_items = collector.total
                m.record_success(export.record_count)
                m.record_rows(export.record_count)
                m.rate_limit_hits = self.stats.rate_limit_hits

        page_failures = collector.active_cursor.failures + collector.history_cursor.failures
        if page_failures:
            result.errors.append(f"{page_failures} page(s) or window(s) failed during the crawl")

        result.total_items = collector.total
        result.succeeded = export.record_count
        self._finish(result, export)
        return result

    async def run_competitor_analysis(
        self,
        input_csv: str | Path,
        output: str | Path | None = None,
        *,
        my_listings: str | Path | None = None,
        stream: bool | None = None,
        limit: int | None = None,
        concurrency: int | None = None,
    ) -> RunResult:
        """Find competitors for every product in `input_csv`."""
        result = RunResult(command="competitors", started_at=datetime.now())
        self.validate_configuration()

        items = load_work_items(input_csv, limit or self.settings.max_items)
        index = load_my_listings(my_listings)
        path = Path(output) if output else self.default_output("competitor_analysis")

        analyzer = CompetitorAnalyzer(
            self.browse_client,
            index,
            min_feedback_percent=self.settings.min_seller_feedback_percent,
            min_feedback_score=self.settings.min_seller_feedback_score,
            min_token_matches=self.settings.min_type_token_matches,
        )

        with log_context(source="browse", phase="competitors"):
            with self.metrics.collection("competitors", total=len(items)) as m:
                try:
                    with self.metrics.phase("analyze"):
                        pool_stats, export = await self.export_rows(
                            items,
                            analyzer.process,
                            COMPETITOR_COLUMNS,
                            path,
                            stream=stream,
                            concurrency=concurrency,
                        )
                except Exception as e:
                    result.errors.append(str(e))
                    logger.error(f"Competitor analysis failed: {e}")
                    raise
                finally:
                    await self.close()

                m.record_success(pool_stats.succeeded)
                if pool_stats.failed:
                    m.record_failure(pool_stats.failed, error_type="item")
                m.record_rows(export.record_count)
                m.rate_limit_hits = self.stats.rate_limit_hits

        result.total_items = pool_stats.submitted
        result.succeeded = pool_stats.succeeded
        result.failed = pool_stats.failed
        result.failed_items = list(pool_stats.failed_items)
        if pool_stats.failed:
            logger.warning(
                f"{pool_stats.failed} item(s) dropped: {', '.join(pool_stats.failed_items)}"
            )
        self._finish(result, export)
        return result

    async def run_discounts_export(
        self,
        output: str | Path | None = None,
        *,
        alert_window_hours: int | None = None,
        stream: bool | None = None,
        limit: int | None = None,
    ) -> RunResult:
        """Export promotions ending within the alert window, soonest first."""
        result = RunResult(command="discounts", started_at=datetime.now())
        self.validate_configuration()

        path = Path(output) if output else self.default_output("expiring_discounts")
        collector = ExpiringPromotionsCollector(
            self.marketing_client,
            self.settings.promotion_marketplace_id,
            alert_window_hours=alert_window_hours or self.settings.alert_window_hours,
            sleep=self.sleep,
        )

        with log_context(source="marketing", phase="discounts"):
            with self.metrics.collection("discounts") as m:
                try:
                    with self.metrics.phase("crawl+export"):
                        rows = _take(collector.collect(), limit or self.settings.max_items)
                        export = await self.export_stream(rows, PROMOTION_COLUMNS, path, stream)
                except Exception as e:
                    result.errors.append(str(e))
                    logger.error(f"Discounts export failed: {e}")
                    raise
                finally:
                    await self.close()

                m.total_items = collector.scanned
                m.record_success(export.record_count)
                m.record_rows(export.record_count)
                m.rate_limit_hits = self.stats.rate_limit_hits

        if collector.cursor.failures:
            result.errors.append(f"{collector.cursor.failures} promotion page(s) failed during the crawl")

        result.total_items = collector.scanned
        result.succeeded = export.record_count
        self._finish(result, export)
        return result

    def _finish(self, result: RunResult, export: ExportResult) -> None:
        result.rows_written = export.record_count
        result.streamed = export.streamed
        result.output = export.filename
        result.request_count = self.stats.request_count
        result.error_count = self.stats.error_count
        result.retry_count = self.stats.retry_count
        result.success = True
        result.ended_at = datetime.now()

        logger.info(
            f"{result.command} completed: {result.rows_written} rows in "
            f"{result.duration_seconds:.1f}s",
            extra=self.stats.snapshot(),
        )


async def _take(
    rows: AsyncIterator[Mapping[str, Any]], limit: int | None
) -> AsyncIterator[Mapping[str, Any]]:
    """Yield at most `limit` rows, closing the source when stopping early."""
    count = 0
    try:
        async for row in rows:
            yield row
            count += 1
            if limit is not None and count >= limit:
                break
    finally:
        await rows.aclose()
