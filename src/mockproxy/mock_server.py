"""
Mock Server
===========
Builds the FastAPI application from resolved Settings and runs it with uvicorn.

    mockproxy ./mocks                                   # mocks only
    mockproxy --proxy https://api.example.com ./mocks   # mock first, proxy on miss
    mockproxy --proxy https://api.example.com -r ./mocks  # ... and record hits
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from mockproxy.core.config import (
    DEFAULT_HOST, DEFAULT_PORT, DEFAULT_PROXY_TIMEOUT, ConfigError, Settings, build_settings
)
from mockproxy.core.state import ModeController, RecentLog
from mockproxy.routers import admin, catch_all
from mockproxy.services.dispatcher import Dispatcher
from mockproxy.services.fixture_store import FixtureStore
from mockproxy.services.proxy import ProxyForwarder
from mockproxy.services.transforms import default_registry

# Logging Setup
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')
logger = logging.getLogger("mockproxy")


def create_app(settings: Settings) -> FastAPI:
    """Wire the core together for one server instance."""
    controller = ModeController(settings.mode)
    store = FixtureStore(settings.fixture_root) if settings.fixture_root else None
    forwarder = None
    if settings.upstream_url:
        forwarder = ProxyForwarder(
            settings.upstream_url,
            controller,
            timeout_seconds=settings.timeout_seconds,
            store=store,
            capture_enabled=settings.capture_enabled,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        plugins = default_registry.load_entry_points()
        if plugins:
            logger.info(f"🔌 Loaded {plugins} transform plugin(s)")
        logger.info(f"Serving data from {settings.fixture_root}, proxy mode {controller.mode.value}")
        yield
        if forwarder is not None:
            await forwarder.aclose()

    app = FastAPI(
        title="Mock Proxy Server", docs_url=None, redoc_url=None, openapi_url=None, lifespan=lifespan
    )
    app.state.settings = settings
    app.state.controller = controller
    app.state.recent_log = RecentLog()
    app.state.dispatcher = Dispatcher(
        controller,
        store=store,
        forwarder=forwarder,
        proxy_first_passthrough=settings.proxy_first_passthrough,
    )

    # Order matters: admin and static routes must win over the catch-all
    app.include_router(admin.router)
    static_dir = os.path.join(settings.fixture_root, "static") if settings.fixture_root else None
    if static_dir and os.path.isdir(static_dir):
        app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(catch_all.router)

    return app


cli = typer.Typer(
    name="mockproxy",
    help="Serve file fixtures as HTTP mocks, optionally proxying to a real upstream.",
    add_completion=False,
)


@cli.command()
def serve(
    directory: Optional[str] = typer.Argument(
        None, envvar="MOCKPROXY_FIXTURES", help="Fixture directory served as mocks"
    ),
    proxy: Optional[str] = typer.Option(
        None, "--proxy", envvar="MOCKPROXY_UPSTREAM", metavar="URL",
        help="Proxy target; starts in fallback mode (mock first, then proxy)",
    ),
    proxy_full: bool = typer.Option(
        False, "--proxy-full", help="Full proxy mode: everything is forwarded to the proxy target"
    ),
    proxy_first: bool = typer.Option(
        False, "--proxy-first", help="Ask the proxy target first, then answer from the mocks"
    ),
    proxy_first_passthrough: bool = typer.Option(
        False, "--proxy-first-passthrough",
        help="In proxy-first mode, serve a successful proxy response instead of dropping it",
    ),
    proxy_timeout: float = typer.Option(
        DEFAULT_PROXY_TIMEOUT, "--proxy-timeout", envvar="MOCKPROXY_PROXY_TIMEOUT", metavar="SECONDS",
        help="How long to wait for the proxy target",
    ),
    record: bool = typer.Option(
        False, "--record", "-r", envvar="MOCKPROXY_RECORD", help="Save proxied responses as mocks"
    ),
    port: int = typer.Option(DEFAULT_PORT, "--port", envvar="MOCKPROXY_PORT", help="Local port for the mock server"),
    host: str = typer.Option(DEFAULT_HOST, "--host", envvar="MOCKPROXY_HOST"),
):
    """Run the mock server."""
    try:
        settings = build_settings(
            upstream_url=proxy,
            fixture_root=directory,
            proxy_full=proxy_full,
            proxy_first=proxy_first,
            proxy_first_passthrough=proxy_first_passthrough,
            timeout_seconds=proxy_timeout,
            capture_enabled=record,
            host=host,
            port=port,
        )
    except ConfigError as e:
        raise typer.BadParameter(str(e))

    app = create_app(settings)
    logger.info(f"Mock server is running on http://localhost:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


def main():
    # .env values become defaults for the MOCKPROXY_* options
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
