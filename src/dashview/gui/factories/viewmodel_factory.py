"""CollectionViewFactory: centralised view-model creation.

Resolves the process-wide services (event bus, response cache, error
handler, settings, HTTP transport) from the DI ``Container`` so that
screens only describe *what* they list.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from dashview.application.services.filter_adapter import FilterAdapter, ParamMapping
from dashview.application.services.url_sync import Location, UrlSyncBridge
from dashview.di.container import Container
from dashview.domain.models.filters import FilterDescriptor
from dashview.domain.models.query import QueryState, ViewMode
from dashview.domain.models.result import FetchContract
from dashview.errors.handler import ErrorHandler
from dashview.events.bus import EventBus
from dashview.gui.viewmodels.collection_viewmodel import CollectionViewModel
from dashview.gui.viewmodels.view_renderer import CardRenderer, ColumnDef, ViewRenderer
from dashview.infrastructure.http.transport import HttpTransport
from dashview.infrastructure.services.response_cache import ResponseCache
from dashview.settings.manager import SettingsManager


class CollectionViewFactory:
    """Builds collection view-models wired to the shared services."""

    def __init__(self, container: Container) -> None:
        self._container = container

    def create(
        self,
        fetch: FetchContract,
        query_key_prefix: str,
        *,
        filters: Iterable[FilterDescriptor] = (),
        initial_state: Optional[QueryState] = None,
        view_mode: Optional[ViewMode] = None,
        location: Optional[Location] = None,
        synced_filters: Optional[Iterable[str]] = None,
        **kwargs: Any,
    ) -> CollectionViewModel:
        """Create a view-model; pass a *location* to sync its state to a URL.

        Extra keyword arguments (``executor``, ``dispatch``...) go straight
        to :class:`CollectionViewModel`.
        """
        settings = self._container.resolve(SettingsManager)
        if initial_state is None:
            initial_state = QueryState(page_size=int(settings.get("views.page_size")))
        if view_mode is None:
            view_mode = ViewMode(settings.get("views.default_view", "table"))
        url_bridge = None
        if location is not None and settings.get("views.url_sync", True):
            url_bridge = UrlSyncBridge(location, synced_filters=synced_filters)
        kwargs.setdefault("debounce_ms", int(settings.get("views.search_debounce_ms")))
        return CollectionViewModel(
            fetch,
            query_key_prefix,
            self._container.resolve(EventBus),
            cache=self._container.resolve(ResponseCache),
            initial_state=initial_state,
            view_mode=view_mode,
            filters=filters,
            url_bridge=url_bridge,
            error_handler=self._container.resolve(ErrorHandler),
            **kwargs,
        )

    def create_for_endpoint(
        self,
        path: str,
        data_path: str,
        total_path: Optional[str] = None,
        *,
        query_key_prefix: Optional[str] = None,
        filter_mapping: Optional[Mapping[str, ParamMapping]] = None,
        **kwargs: Any,
    ) -> CollectionViewModel:
        """Create a view-model over a REST list endpoint of the configured API."""
        transport = self._container.resolve(HttpTransport)
        adapter = FilterAdapter(
            transport.endpoint(path),
            data_path,
            total_path,
            filter_mapping=filter_mapping,
        )
        prefix = query_key_prefix or path.strip("/").replace("/", ":")
        return self.create(adapter, prefix, **kwargs)

    @staticmethod
    def create_renderer(
        viewmodel: CollectionViewModel,
        columns: Sequence[ColumnDef],
        card_renderer: Optional[CardRenderer] = None,
    ) -> ViewRenderer:
        return ViewRenderer(viewmodel, columns, card_renderer)
