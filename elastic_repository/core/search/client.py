"""Search Client Factory.

Builds the synchronous Elasticsearch transport client that repositories
issue their requests through.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch
from elasticsearch import TransportError as _TransportError

from elastic_repository.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_client(settings: Optional[Settings] = None, **overrides: Any) -> Elasticsearch:
    """Create an Elasticsearch client from settings.

    Args:
        settings: Connection settings, defaults to the process settings
        **overrides: Extra keyword arguments passed to the client

    Returns:
        Elasticsearch client
    """
    settings = settings or get_settings()

    kwargs: Dict[str, Any] = {
        "hosts": [settings.ES_URL],
        "verify_certs": settings.ES_VERIFY_CERTS,
        "request_timeout": settings.ES_REQUEST_TIMEOUT_S,
    }

    if settings.ES_API_KEY:
        kwargs["api_key"] = settings.ES_API_KEY
    elif settings.ES_USERNAME and settings.ES_PASSWORD:
        kwargs["basic_auth"] = (settings.ES_USERNAME, settings.ES_PASSWORD)

    kwargs.update(overrides)

    client = Elasticsearch(**kwargs)
    logger.info(f"Created Elasticsearch client for {settings.ES_URL}")
    return client


def check_connection(client: Elasticsearch) -> bool:
    """Return True when the cluster answers a ping."""
    try:
        return bool(client.ping())
    except _TransportError as e:
        logger.error(f"Elasticsearch ping failed: {e}")
        return False


# Global search client
_client: Optional[Elasticsearch] = None


def get_client() -> Elasticsearch:
    """Get the shared client, creating it from process settings on first use."""
    global _client

    if _client is None:
        _client = create_client()

    return _client


def set_client(client: Optional[Elasticsearch]) -> None:
    """Set (or reset with None) the shared client."""
    global _client
    _client = client
