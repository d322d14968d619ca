"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.handlers import handle_list, handle_proxy
from core.config import Config
from core.protocols import RequestLogger
from core.registry import UpstreamRegistry
from services.forwarding import ForwardingEngine
from services.upstream import UpstreamClient


def create_app(
    config: Config,
    registry: UpstreamRegistry,
    logger: RequestLogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``transport`` replaces the network transport of the upstream client.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limits = httpx.Limits(
            max_connections=config.client.max_connections,
            max_keepalive_connections=config.client.max_keepalive_connections,
        )
        client = httpx.AsyncClient(
            timeout=config.client.timeout,
            limits=limits,
            transport=transport,
        )
        app.state.forwarding_engine = ForwardingEngine(
            registry=registry,
            upstream=UpstreamClient(client),
            logger=logger,
        )
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="Keyhole Proxy", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_methods=config.cors.allow_methods,
        allow_headers=config.cors.allow_headers,
    )

    @app.get("/")
    async def list_apis():
        return await handle_list(registry)

    @app.post("/proxy")
    async def proxy_request(request: Request):
        return await handle_proxy(request, config)

    return app
