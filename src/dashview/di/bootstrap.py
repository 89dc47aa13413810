from __future__ import annotations

from typing import Optional

from dashview.application.services.cache_invalidator import CacheInvalidator
from dashview.errors import ResolutionError
from dashview.errors.handler import ErrorHandler
from dashview.events.bus import EventBus
from dashview.infrastructure.http.transport import AuthProvider, HttpTransport
from dashview.infrastructure.services.cache_stats import CacheStatsCollector
from dashview.infrastructure.services.response_cache import ResponseCache
from dashview.settings.manager import SettingsManager
from dashview.utils.logging import get_logger

from .container import Container
from .lifetime import Lifetime


def bootstrap(container: Container, settings: Optional[SettingsManager] = None) -> None:
    """Register the process-wide services in the DI container.

    Everything registered here is shared by all view instances; per-view
    objects are built by :class:`dashview.gui.factories.CollectionViewFactory`.
    """
    settings = settings or SettingsManager()
    container.register_instance(SettingsManager, settings)
    container.register_singleton(EventBus, EventBus)
    container.register_singleton(CacheStatsCollector, CacheStatsCollector)
    container.register_factory(
        ResponseCache,
        lambda c: ResponseCache(
            stale_time=float(settings.get("cache.stale_time")),
            gc_time=float(settings.get("cache.gc_time")),
            stats=c.resolve(CacheStatsCollector),
        ),
        Lifetime.SINGLETON,
    )
    container.register_factory(
        ErrorHandler,
        lambda c: ErrorHandler(get_logger("errors"), c.resolve(EventBus)),
        Lifetime.SINGLETON,
    )
    container.register_factory(
        CacheInvalidator,
        lambda c: CacheInvalidator(c.resolve(ResponseCache), c.resolve(EventBus)),
        Lifetime.SINGLETON,
    )
    container.register_factory(HttpTransport, _transport_factory(settings), Lifetime.SINGLETON)

    # Must be listening before any view-model subscribes its own refetch.
    container.resolve(CacheInvalidator)


def _transport_factory(settings: SettingsManager):
    def build(container: Container) -> HttpTransport:
        base_url = settings.get("api.base_url")
        if not base_url:
            raise ResolutionError("HttpTransport needs api.base_url in the settings")
        auth = container.resolve(AuthProvider) if container.is_registered(AuthProvider) else None
        return HttpTransport(
            base_url,
            auth,
            timeout=float(settings.get("api.timeout")),
            max_retries=int(settings.get("api.max_retries")),
        )

    return build
