"""Authenticated JSON-over-HTTP transport built on :mod:`requests`.

* Bearer token on every request, read from an :class:`AuthProvider`.
* Bounded retries with exponential backoff for throttling, gateway errors
  and dropped connections.  Other 4xx answers are never retried.
* One token refresh at a time: when several requests hit 401 together the
  first refreshes and the rest wait on the lock, then replay with the token
  it obtained.  A failed refresh logs the user out and raises
  :class:`AuthExpiredError`.
* The request's cancellation token is checked before every attempt.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Mapping, Optional, Protocol

import requests

from dashview.config import (
    MAX_RETRIES,
    REFRESH_TOKEN_PATH,
    REQUEST_TIMEOUT_SEC,
    RETRY_BACKOFF_SEC,
    RETRY_STATUSES,
)
from dashview.errors import AuthExpiredError, HttpStatusError, NetworkError
from dashview.utils.logging import get_logger

LOGGER = get_logger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."


class AuthProvider(Protocol):
    """Session owner the transport reads tokens from."""

    def get_access_token(self) -> Optional[str]: ...

    def get_refresh_token(self) -> Optional[str]: ...

    def set_tokens(self, access_token: str, refresh_token: Optional[str]) -> None: ...

    def logout(self) -> None: ...


class TokenAuth:
    """In-memory :class:`AuthProvider` (CLI ``--token``, tests)."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self.logged_out = False

    def get_access_token(self) -> Optional[str]:
        return self._access_token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_tokens(self, access_token: str, refresh_token: Optional[str]) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token

    def logout(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self.logged_out = True


class HttpTransport:
    """Thin request wrapper returning decoded JSON bodies."""

    def __init__(
        self,
        base_url: str,
        auth: Optional[AuthProvider] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SEC,
        max_retries: int = MAX_RETRIES,
        backoff: float = RETRY_BACKOFF_SEC,
        retry_statuses: frozenset[int] = RETRY_STATUSES,
        refresh_path: str = REFRESH_TOKEN_PATH,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff = backoff
        self._retry_statuses = retry_statuses
        self._refresh_path = refresh_path
        self._sleep = sleep
        self._refresh_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        signal: Any = None,
    ) -> Any:
        url = self.url_for(path)
        method = method.upper()
        attempt = 0
        refreshed = False
        while True:
            if signal is not None:
                signal.raise_if_cancelled()
            token = self._auth.get_access_token() if self._auth is not None else None
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(token, headers),
                    timeout=self._timeout,
                )
            except requests.Timeout as exc:
                error: NetworkError = NetworkError(f"{method} {url} timed out after {self._timeout}s")
                error.__cause__ = exc
                retry_after = None
            except requests.RequestException as exc:
                error = NetworkError(f"{method} {url} failed: {exc}")
                error.__cause__ = exc
                retry_after = None
            else:
                status = response.status_code
                if 200 <= status < 300:
                    return self._decode(response)
                if status == 401 and self._auth is not None:
                    if refreshed:
                        self._auth.logout()
                        raise AuthExpiredError(SESSION_EXPIRED_MESSAGE)
                    refreshed = True
                    self._refresh(token)
                    continue
                error = self._status_error(method, url, response)
                if status not in self._retry_statuses:
                    raise error
                retry_after = response.headers.get("Retry-After")

            if attempt >= self._max_retries:
                raise error
            attempt += 1
            delay = self._delay(attempt, retry_after)
            LOGGER.warning(
                "%s; retrying in %.1fs (%d/%d)", error, delay, attempt, self._max_retries
            )
            self._sleep(delay)

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, json=json, **kwargs)

    def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def endpoint(self, path: str, method: str = "GET") -> Callable[[dict[str, Any], Any], Any]:
        """Raw API callable ``(params, signal) -> body`` for a list endpoint."""

        def call(params: dict[str, Any], signal: Any = None) -> Any:
            if method.upper() == "GET":
                return self.request(method, path, params=params, signal=signal)
            return self.request(method, path, json=params, signal=signal)

        call.__name__ = f"{method.lower()}_{path.strip('/').replace('/', '_') or 'root'}"
        return call

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.strip("/"):
            return self._base_url
        return f"{self._base_url}/{path.lstrip('/')}"

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _headers(token: Optional[str], extra: Optional[Mapping[str, str]]) -> dict[str, str]:
        headers: dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _status_error(self, method: str, url: str, response: requests.Response) -> HttpStatusError:
        payload = self._decode(response)
        message = None
        if isinstance(payload, Mapping):
            message = payload.get("message") or payload.get("error")
        if not message:
            message = response.reason or "Request failed"
        return HttpStatusError(
            f"{method} {url} -> {response.status_code}: {message}",
            response.status_code,
            payload,
        )

    def _delay(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                pass
        return self._backoff * (2 ** (attempt - 1))

    def _refresh(self, stale_token: Optional[str]) -> None:
        """Single-flight token refresh; raises :class:`AuthExpiredError` on failure."""
        assert self._auth is not None
        with self._refresh_lock:
            current = self._auth.get_access_token()
            if current and current != stale_token:
                LOGGER.debug("Token already refreshed by a concurrent request")
                return
            refresh_token = self._auth.get_refresh_token()
            new_access = new_refresh = None
            if refresh_token:
                try:
                    response = self._session.post(
                        self.url_for(self._refresh_path),
                        json={"refreshToken": refresh_token},
                        timeout=self._timeout,
                    )
                    if response.ok:
                        data = (response.json() or {}).get("data") or {}
                        new_access = data.get("accessToken")
                        new_refresh = data.get("refreshToken")
                except (requests.RequestException, ValueError, AttributeError) as exc:
                    LOGGER.warning("Token refresh failed: %s", exc)
            if not new_access:
                LOGGER.info("Token refresh rejected; logging out")
                self._auth.logout()
                raise AuthExpiredError(SESSION_EXPIRED_MESSAGE)
            self._auth.set_tokens(new_access, new_refresh or refresh_token)
            LOGGER.debug("Access token refreshed")
