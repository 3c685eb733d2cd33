"""
HTTP application serving monerod metrics.

Every request to ``/metrics`` runs a fresh collection cycle against the
daemon. If any daemon call fails the whole scrape fails with a 500 and no
metrics, so Prometheus records a failed scrape instead of a partial one.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, Sequence, TypeVar

from fastapi import FastAPI, Request, Response

from monerod_exporter import __version__
from monerod_exporter.blocks import BlockWindowAggregator
from monerod_exporter.client import MonerodClient
from monerod_exporter.config import Config
from monerod_exporter.errors import RpcError
from monerod_exporter.exposition import CONTENT_TYPE, render
from monerod_exporter.metrics import (
    CATALOGUE_VERSION,
    DaemonSnapshot,
    Sample,
    map_node,
    map_snapshot,
    sample,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISCONNECT_POLL_INTERVAL = 0.1


# ------------------------
# COLLECTION
# ------------------------
async def gather_or_cancel(*aws: Awaitable):
    """Like ``asyncio.gather`` but cancels the remaining calls once one fails"""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


class Scraper:
    """Runs one collection cycle per scrape"""

    def __init__(self, client: MonerodClient, block_window: int, block_spans: Optional[Sequence[int]] = None):
        self.client = client
        self.block_window = block_window
        self.block_spans = block_spans
        self.blocks = BlockWindowAggregator(client)

    async def collect(self) -> List[Sample]:
        """
        Query the daemon and build the full sample set

        Raises:
            RpcError: when any daemon call fails; no samples are returned
        """
        start_time = time.monotonic()

        info = await self.client.get_info()

        if info.get("synchronized") is False:
            logger.info("node is not synchronized yet - skipped exporting tx pool, network and block metrics")
            samples = map_node(info)
        else:
            pool_stats, block_samples = await gather_or_cancel(
                self.client.get_transaction_pool_stats(),
                self.blocks.aggregate(self.block_window, self.block_spans),
            )
            samples = map_snapshot(DaemonSnapshot(info=info, pool_stats=pool_stats))
            samples.extend(block_samples)

        samples.append(sample(
            "monero_exporter_build_info", 1,
            {"version": __version__, "catalogue": CATALOGUE_VERSION},
        ))
        samples.append(sample("monero_exporter_scrape_duration_seconds", time.monotonic() - start_time))
        return samples

    async def scrape(self) -> str:
        return render(await self.collect())


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def run_until_disconnected(request: Request, aw: Awaitable[T]) -> Optional[T]:
    """
    Await ``aw`` unless the client goes away first

    Returns ``None`` after cancelling ``aw`` if the client disconnected. An
    error while checking for the disconnect cancels ``aw`` and propagates.
    """
    work = asyncio.ensure_future(aw)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
    if work not in done:
        # Re-raises when the disconnect check itself failed
        watcher.result()
        return None
    return work.result()


def _error_response(error: Exception) -> Response:
    return Response(
        content=f"# Error collecting metrics: {error}\n",
        media_type="text/plain; charset=utf-8",
        status_code=500,
    )


# ------------------------
# APP SETUP
# ------------------------
def create_app(config: Config, client: Optional[MonerodClient] = None) -> FastAPI:
    """
    Build the exporter application

    Args:
        config: Loaded configuration
        client: Daemon client to use; one is built from ``config`` when omitted
            and closed again on shutdown

    Returns:
        The FastAPI application
    """
    owns_client = client is None
    if client is None:
        client = MonerodClient.from_config(config.monerod)
    scraper = Scraper(client, config.block_window, config.block_spans)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Exporter started, scraping monerod at {config.monerod.base_url}")
        yield
        if owns_client:
            await client.aclose()
        logger.info("Exporter shutdown complete")

    app = FastAPI(title="Monerod Exporter", version=__version__, lifespan=lifespan)
    app.state.scraper = scraper

    # ------------------------
    # HTTP ENDPOINTS
    # ------------------------
    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "Monerod Exporter",
            "version": __version__,
            "metrics_path": "/metrics",
            "health_path": "/health",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint, does not contact the daemon"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/metrics")
    async def metrics(request: Request):
        """
        Prometheus metrics endpoint

        Returns metrics in Prometheus text format
        """
        start_time = time.time()

        try:
            metrics_output = await run_until_disconnected(request, scraper.scrape())
        except RpcError as e:
            logger.error(f"Error collecting metrics: {e}")
            return _error_response(e)
        except Exception as e:
            logger.error(f"Error generating metrics: {e}", exc_info=True)
            return _error_response(e)

        if metrics_output is None:
            logger.warning("Scrape client disconnected, abandoned collection")
            return Response(status_code=499)

        duration = time.time() - start_time
        logger.info(f"Metrics scraped successfully in {duration:.2f}s")
        return Response(content=metrics_output, media_type=CONTENT_TYPE)

    return app
