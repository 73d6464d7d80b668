"""
api-logger: Test Configuration (conftest.py)
============================================

What:  Shared fixtures: test settings, a FastAPI app wrapped in the middleware,
       an httpx client bound to it, and helpers to read emitted records.
How:   httpx AsyncClient over ASGITransport talks to the app in-process; pytest's
       caplog captures what lands on the "api_logger.access" logger.

Fixture Hierarchy:
    test_settings   → Settings with zero retry backoff, no .env lookup
    make_app        → factory: FastAPI app + ApiLoggerMiddleware(**options)
    make_client     → factory: AsyncClient bound to an app
    access_records  → parsed (level, record) pairs from caplog
"""

import json
import logging
import os
from typing import Any, Callable, Dict, List, Tuple

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from httpx import ASGITransport, AsyncClient

# Keep a developer's environment from leaking into defaults
for _name in list(os.environ):
    if _name.startswith("API_LOGGER_"):
        del os.environ[_name]

from api_logger.config import Settings
from api_logger.middleware.api_logger import ACCESS_LOGGER_NAME, ApiLoggerMiddleware


@pytest.fixture
def test_settings() -> Settings:
    return Settings(retry_min_wait=0, retry_max_wait=0, _env_file=None)


def build_routes(app: FastAPI) -> None:
    @app.get("/items")
    async def list_items():
        return {"items": [1, 2, 3]}

    @app.post("/echo")
    async def echo(request: Request):
        payload = await request.json()
        return JSONResponse(payload, status_code=201)

    @app.get("/text")
    async def text():
        return PlainTextResponse("plain hello")

    @app.get("/binary")
    async def binary():
        return Response(content=b"\x00\x01\x02\x03", media_type="application/octet-stream")

    @app.get("/empty")
    async def empty():
        return Response(status_code=204)

    @app.get("/missing")
    async def missing():
        return JSONResponse({"detail": "not here"}, status_code=404)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")


@pytest.fixture
def make_app(test_settings) -> Callable[..., FastAPI]:
    """
    Factory for a FastAPI app with ApiLoggerMiddleware installed.

    Usage:
        app = make_app(excluded_headers=["authorization"])
    """

    def _make(**options: Any) -> FastAPI:
        app = FastAPI()
        build_routes(app)
        options.setdefault("settings", test_settings)
        app.add_middleware(ApiLoggerMiddleware, **options)
        return app

    return _make


@pytest.fixture
def make_client():
    """Factory for an AsyncClient routed straight into an ASGI app."""

    def _make(app) -> AsyncClient:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        return AsyncClient(transport=transport, base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def client(make_app, make_client):
    async with make_client(make_app()) as c:
        yield c


@pytest.fixture
def access_records(caplog) -> Callable[[], List[Tuple[int, Dict[str, Any]]]]:
    """Returns a callable listing (levelno, parsed record) for every emitted record."""
    caplog.set_level(logging.INFO, logger=ACCESS_LOGGER_NAME)

    def _records() -> List[Tuple[int, Dict[str, Any]]]:
        return [
            (r.levelno, json.loads(r.getMessage()))
            for r in caplog.records
            if r.name == ACCESS_LOGGER_NAME
        ]

    return _records
