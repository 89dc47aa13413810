"""Default configuration values for dashview."""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

DEFAULT_PAGE_SIZE: Final[int] = 10
PAGE_SIZE_OPTIONS: Final[tuple[int, ...]] = (10, 20, 50, 100)

# Remote filter controls page their options in smaller chunks than the
# collections they filter.
FILTER_OPTIONS_PAGE_SIZE: Final[int] = 10

# ---------------------------------------------------------------------------
# Request orchestration
# ---------------------------------------------------------------------------

# Trailing debounce applied to free-text search before a fetch is issued.
SEARCH_DEBOUNCE_MS: Final[int] = 300

# Worker threads per view instance.  Superseded requests may still occupy a
# worker until the transport gives up on them, so keep a little headroom.
FETCH_WORKERS: Final[int] = 4

# ---------------------------------------------------------------------------
# Response cache
# ---------------------------------------------------------------------------

STALE_TIME_SEC: Final[float] = 30.0
GC_TIME_SEC: Final[float] = 300.0
FILTER_OPTIONS_STALE_TIME_SEC: Final[float] = 300.0
FILTER_OPTIONS_KEY_PREFIX: Final[str] = "filter-options"
DEFAULT_QUERY_KEY_PREFIX: Final[str] = "server-table"

# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------

REQUEST_TIMEOUT_SEC: Final[float] = 25.0
MAX_RETRIES: Final[int] = 2
RETRY_BACKOFF_SEC: Final[float] = 0.5
RETRY_STATUSES: Final[frozenset[int]] = frozenset({429, 502, 503, 504})
REFRESH_TOKEN_PATH: Final[str] = "/api/v1/users/refresh-token"

# ---------------------------------------------------------------------------
# URL synchronisation
# ---------------------------------------------------------------------------

URL_FILTER_PREFIX: Final[str] = "filter_"
