"""Worker that keeps cached reports fresh.

Two loops share the process: one consumes recompute jobs published by the
posting path, the other refreshes every active tenant's dashboard on a fixed
interval so a lost job is healed by the next tick.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.orm import Session

from finledger.core.config import Settings, get_settings
from finledger.core.logging import configure_logging
from finledger.db.session import SessionLocal
from finledger.obs import report_queue_depth
from finledger.services.report_cache import RedisReportCache, ReportCache, ReportCacheService, ReportRefreshSummary
from finledger.services.report_jobs import ReportJobConsumer
from finledger.workers.observability import configure_worker, worker_span
from workers.report_cache.scheduler import run_interval_scheduler

logger = logging.getLogger(__name__)
QUEUE_NAME = "report-recompute-jobs"


class ReportCacheWorker:
    """Coordinates recompute job consumption and scheduled refreshes."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        cache: ReportCache | None = None,
        consumer: ReportJobConsumer | None = None,
        session_factory=SessionLocal,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache or RedisReportCache(settings=self._settings)
        self._session_factory = session_factory
        self._consumer = consumer or ReportJobConsumer(
            session_factory=session_factory,
            service_factory=self._service_for,
            settings=self._settings,
        )

    def _service_for(self, session: Session) -> ReportCacheService:
        return ReportCacheService(session, cache=self._cache, settings=self._settings)

    def refresh_once(self) -> ReportRefreshSummary:
        session = self._session_factory()
        try:
            summary = self._service_for(session).refresh_dashboards()
        finally:
            session.close()
        logger.info(
            "scheduled dashboard refresh complete",
            extra={"refreshed": summary.refreshed, "failed": summary.failed},
        )
        return summary

    async def consume_forever(self) -> None:
        logger.info("report cache consumer started")
        while True:
            processed = await self.poll()
            if not processed:
                await asyncio.sleep(self._settings.report_worker_poll_interval_seconds)

    async def poll(self) -> int:
        """Run one consumer poll; a failing poll is logged and reported as idle."""

        with worker_span("report_cache.poll"):
            try:
                processed = await asyncio.to_thread(self._consumer.poll_once)
            except Exception:
                logger.exception("report job poll failed")
                return 0
            report_queue_depth(QUEUE_NAME, 0 if processed else 1)
        return processed

    async def refresh(self) -> ReportRefreshSummary | None:
        """Run one scheduled refresh; a failed tick is logged and left to the next one."""

        with worker_span("report_cache.refresh"):
            try:
                return await asyncio.to_thread(self.refresh_once)
            except Exception:
                logger.exception("scheduled dashboard refresh tick failed")
                return None

    async def refresh_forever(self) -> None:
        logger.info(
            "report refresh scheduler started",
            extra={"interval_seconds": self._settings.report_refresh_interval_seconds},
        )
        await run_interval_scheduler(
            self.refresh,
            interval_seconds=self._settings.report_refresh_interval_seconds,
        )

    async def run_forever(self) -> None:
        await asyncio.gather(self.consume_forever(), self.refresh_forever())


async def run() -> None:
    configure_worker("report-cache-worker", queues=[QUEUE_NAME])
    worker = ReportCacheWorker()
    await worker.run_forever()


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - signal handling for CLI
        logger.info("report cache worker stopped")


if __name__ == "__main__":
    main()
