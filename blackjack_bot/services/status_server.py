"""HTTP server for the control panel: table status, metrics and health."""

import logging
from dataclasses import asdict
from aiohttp import web

from blackjack_bot.services.dispatcher import CommandDispatcher
from blackjack_bot.services.blackjack import GameState
from blackjack_bot.services.metrics import metrics

logger = logging.getLogger(__name__)


class StatusServer:
    """Read-only view of the bot for a dashboard to poll."""

    def __init__(self, dispatcher: CommandDispatcher, host: str = "0.0.0.0", port: int = 9090):
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/status", self._handle_status)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/ads", self._handle_ads)
        app.router.add_post("/ads/config", self._handle_ads_config)
        return app

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Handle /status: every table plus lifetime totals."""
        tables = [snapshot.to_dict() for snapshot in self.dispatcher.registry.snapshots()]
        try:
            totals = await self.dispatcher.stats.get_total_stats()
        except Exception as e:
            logger.error(f"Error loading stats totals: {e}")
            totals = None

        return web.json_response({
            "connected": not self.dispatcher.is_paused,
            "tables": tables,
            "totals": totals,
        })

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Handle /metrics endpoint."""
        snapshots = self.dispatcher.registry.snapshots()
        await metrics.set_gauge("blackjack_tables", len(snapshots))
        await metrics.set_gauge(
            "blackjack_tables_in_play",
            sum(1 for s in snapshots if s.state != GameState.WAITING),
        )
        await metrics.set_gauge("blackjack_seated_players", sum(s.player_count for s in snapshots))

        try:
            metrics_text = await metrics.get_metrics()
            return web.Response(
                text=metrics_text,
                content_type="text/plain",
                charset="utf-8",
            )
        except Exception as e:
            logger.error(f"Error generating metrics: {e}")
            return web.Response(text="# Error generating metrics", status=500)

    async def _handle_health(self, request: web.Request) -> web.Response:
        if self.dispatcher.is_paused:
            return web.json_response({"status": "disconnected"}, status=503)
        return web.json_response({"status": "healthy"})

    async def _handle_ads(self, request: web.Request) -> web.Response:
        ads = self.dispatcher.ads
        if ads is None:
            return web.json_response({"enabled": False, "channels": {}})
        return web.json_response({
            "config": asdict(ads.config),
            "channels": ads.get_stats(),
        })

    async def _handle_ads_config(self, request: web.Request) -> web.Response:
        ads = self.dispatcher.ads
        if ads is None:
            return web.json_response({"error": "advertisements are not configured"}, status=404)

        try:
            changes = await request.json()
            config = ads.update_config(**changes)
        except (ValueError, TypeError, AttributeError) as e:
            return web.json_response({"error": str(e)}, status=400)

        return web.json_response({"config": asdict(config)})

    async def start(self):
        """Start the status HTTP server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        logger.info(f"Status server started at http://{self.host}:{self.port}")
        logger.info(f"  - Status:  http://{self.host}:{self.port}/status")
        logger.info(f"  - Metrics: http://{self.host}:{self.port}/metrics")
        logger.info(f"  - Health:  http://{self.host}:{self.port}/health")

    async def stop(self):
        """Stop the status HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            logger.info("Status server stopped")
