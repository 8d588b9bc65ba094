"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache

from config.settings import get_settings
from integrations.openai_realtime import RealtimeConnector


@lru_cache(maxsize=1)
def _connector_factory() -> RealtimeConnector:
    return RealtimeConnector(get_settings())


def get_upstream_connector() -> RealtimeConnector:
    return _connector_factory()
