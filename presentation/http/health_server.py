from typing import Optional

from aiohttp import web

from infrastructure.monitoring.health_check import HealthChecker
from infrastructure.monitoring.logging import StructuredLogger


class HealthServer:
    """Небольшой HTTP сервер, чтобы у хостинга был открытый порт"""

    def __init__(self, health_checker: HealthChecker, port: int, host: str = "0.0.0.0"):
        self.health_checker = health_checker
        self.port = port
        self.host = host
        self.logger = StructuredLogger("health_server")
        self._runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.index)
        app.router.add_get("/health", self.health)
        return app

    async def index(self, request: web.Request) -> web.Response:
        return web.Response(text="Relay Telegram bot is running.\n")

    async def health(self, request: web.Request) -> web.Response:
        status = self.health_checker.perform_health_check()
        http_status = 200 if status.status != "unhealthy" else 503
        return web.json_response(status.to_dict(), status=http_status)

    async def start(self):
        if self._runner:
            return
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        self.logger.info(f"HTTP server listening on port {self.port}")

    async def stop(self):
        if not self._runner:
            return
        await self._runner.cleanup()
        self._runner = None
        self.logger.info("HTTP server stopped")
