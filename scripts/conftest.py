from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from uptimeboard.config import parse_config
from uptimeboard.db import Database


@pytest.fixture
def db(tmp_path):
    """SQLite-база во временной папке, схема создаётся заново для каждого теста."""
    database = Database.connect(f"sqlite+pysqlite:///{(tmp_path / 'test.sqlite').as_posix()}")
    database.create_schema()
    yield database
    database.close()


@pytest.fixture
def config():
    return parse_config({
        "services": [
            {"service": "alpha", "url": "https://alpha.example.com", "okStatusCode": 200, "schedule": "every 5 minutes"},
            {"service": "beta", "url": "https://beta.example.com", "okStatusCode": 204, "schedule": "*/2 * * * *"},
        ],
        "notify": [{"topic": "alerts", "schedule": "every 5 minutes", "minutesBetween": 30}],
    })


@asynccontextmanager
async def _local_server(routes):
    """Локальный HTTP-сервер: routes = [(method, path, handler), ...]."""
    app = web.Application()
    for method, path, handler in routes:
        app.router.add_route(method, path, handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def local_server():
    return _local_server
