import os
from unittest.mock import MagicMock

import pytest


# List of environment variables that may be modified by tests
_ENV_VARS_TO_ISOLATE = [
    "ES_URL",
    "ES_USERNAME",
    "ES_PASSWORD",
    "ES_API_KEY",
    "ES_VERIFY_CERTS",
    "ES_REQUEST_TIMEOUT_S",
    "ES_SCROLL_KEEPALIVE",
    "LOG_LEVEL",
    "LOG_JSON",
]


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate environment variables between tests."""
    backup = {k: os.environ.get(k) for k in _ENV_VARS_TO_ISOLATE}
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture(autouse=True)
def settings_isolation():
    """Drop cached settings and the shared client so each test reads a clean environment."""
    from elastic_repository.core import config
    from elastic_repository.core.search import client

    config.reset_settings()
    client.set_client(None)
    try:
        yield
    finally:
        config.reset_settings()
        client.set_client(None)


@pytest.fixture
def transport():
    """Mocked Elasticsearch client."""
    return MagicMock()


@pytest.fixture
def repo_logger():
    """Mocked structured logger, to assert on emitted log calls."""
    from elastic_repository.core.logging.structured import StructuredLogger

    return MagicMock(spec=StructuredLogger)


@pytest.fixture
def make_repository(transport, repo_logger):
    """Build a repository over the mocked client with the given config overrides."""
    from elastic_repository.core.repository import Repository

    def _make(repository_cls=Repository, **config):
        config.setdefault("index", "my_index")
        return repository_cls(transport, config, logger=repo_logger)

    return _make


def search_response(hits=None, total=None, scroll_id=None, aggregations=None):
    """Build a search response the way the engine shapes it."""
    hits = hits or []
    response = {
        "took": 1,
        "hits": {
            "total": {"value": len(hits) if total is None else total, "relation": "eq"},
            "hits": hits,
        },
    }
    if scroll_id is not None:
        response["_scroll_id"] = scroll_id
    if aggregations is not None:
        response["aggregations"] = aggregations
    return response


@pytest.fixture
def make_search_response():
    return search_response
