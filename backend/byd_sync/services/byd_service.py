"""
SAP Business ByDesign OData client.
Basic auth from pre-encoded credentials, requests library, retries on 429/5xx, __next pagination.
"""

import logging
import time
from functools import lru_cache
from typing import Any
from urllib.parse import urljoin

import requests

from byd_sync.core.config import get_settings
from byd_sync.models.entity import DeltaQuery

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUS_CODES = (401, 403)


class ByDServiceError(Exception):
    """Raised when a ByD OData call fails (transport error or non-2xx status)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ByDAuthError(ByDServiceError):
    """Raised when ByD rejects the credentials (401/403)."""


class ByDService:
    """
    ByD OData service. One shared requests.Session; request construction is stateless
    so a single instance can serve concurrent entity pipelines.
    """

    def __init__(
        self,
        base_url: str | None = None,
        auth: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        max_pages: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url if base_url is not None else settings.BYD_ODATA
        self._auth = auth if auth is not None else settings.BYD_AUTH
        self._timeout = timeout if timeout is not None else settings.BYD_TIMEOUT_SECONDS
        self._max_retries = max_retries if max_retries is not None else settings.BYD_MAX_RETRIES
        self._max_pages = max_pages if max_pages is not None else settings.BYD_MAX_PAGES
        self._retry_status_codes = (429, 500, 502, 503)
        self._session = session or requests.Session()

    def _get_headers(self) -> dict[str, str]:
        """Build request headers with Basic credentials."""
        if not self._auth:
            raise ByDAuthError("ByD credentials not configured. Set BYD_AUTH in environment.")
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth}",
            # CSRF negotiation header; the returned token is not replayed (read-only flow)
            "x-csrf-token": "fetch",
        }

    def _build_url(self, path: str) -> str:
        if not self._base_url:
            raise ByDServiceError("ByD OData URL not configured. Set BYD_ODATA in environment.")
        return f"{self._base_url.rstrip('/')}/{path.lstrip('/')}"

    def _handle_error(self, response: requests.Response) -> None:
        """Interpret error response and raise ByDServiceError / ByDAuthError with detail."""
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        msg = f"ByD OData error: {response.status_code}"
        if isinstance(body, dict):
            # OData v2 error envelope: {"error": {"code": ..., "message": {"value": ...}}}
            error = body.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else None
            if isinstance(message, dict):
                message = message.get("value")
            if isinstance(message, str) and message:
                msg += f" ({message})"
        elif isinstance(body, str) and body:
            msg += f" ({body[:500]})"
        msg += f": GET {response.url}"
        error_cls = ByDAuthError if response.status_code in AUTH_FAILURE_STATUS_CODES else ByDServiceError
        raise error_cls(msg, status_code=response.status_code, detail=body)

    def _request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        retries: int | None = None,
    ) -> dict[str, Any]:
        """
        Execute GET with a bounded timeout and retries on 429/5xx and transport errors.
        Success means the actual response status is within [200, 300).
        """
        retries = self._max_retries if retries is None else retries
        headers = self._get_headers()
        last_exc: Exception | None = None

        for attempt in range(retries + 1):
            try:
                resp = self._session.get(
                    url,
                    headers=headers,
                    params=params,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                last_exc = e
                logger.warning("ByD request failed (attempt %d): %s", attempt + 1, e)
                if attempt < retries:
                    time.sleep(2 ** attempt)
                continue

            logger.info("ByD response: %s %s", resp.status_code, resp.reason)
            if 200 <= resp.status_code < 300:
                try:
                    data = resp.json()
                except ValueError as e:
                    raise ByDServiceError(
                        f"ByD returned a non-JSON body: {url}",
                        status_code=resp.status_code,
                        detail=resp.text[:500] if resp.text else None,
                    ) from e
                if not isinstance(data, dict):
                    raise ByDServiceError(f"Unexpected ByD response shape: {url}", status_code=resp.status_code)
                return data

            if resp.status_code in self._retry_status_codes and attempt < retries:
                retry_after = resp.headers.get("Retry-After")
                wait = float(retry_after) if retry_after and retry_after.isdigit() else (2 ** attempt)
                logger.warning(
                    "ByD %s %s (attempt %d), retrying in %.1fs",
                    resp.status_code,
                    resp.reason,
                    attempt + 1,
                    wait,
                )
                time.sleep(wait)
                continue

            self._handle_error(resp)

        if last_exc:
            raise ByDServiceError(
                f"ByD request failed after {retries + 1} attempts: {last_exc!s}"
            ) from last_exc
        raise ByDServiceError("ByD request failed unexpectedly")

    @staticmethod
    def _unwrap(data: dict[str, Any]) -> tuple[list[dict[str, Any]], str | None]:
        """Return (results, next_link) from the {"d": {"results": [...], "__next": ...}} envelope."""
        envelope = data.get("d")
        if isinstance(envelope, list):
            return envelope, None
        if not isinstance(envelope, dict) or not isinstance(envelope.get("results"), list):
            raise ByDServiceError("ByD response is missing the d.results envelope", detail=data)
        return envelope["results"], envelope.get("__next")

    # -------------------------------------------------------------------------
    # Entity collections
    # -------------------------------------------------------------------------

    def fetch_entity(self, query: DeltaQuery) -> list[dict[str, Any]]:
        """
        Fetch every raw record matching query. Follows d.__next links until the source
        reports no further pages; raises ByDServiceError past max_pages.
        """
        url = self._build_url(query.endpoint)
        params: dict[str, Any] | None = query.to_params()
        records: list[dict[str, Any]] = []
        logger.info("Retrieving ByD %s from %s", query.entity_name, query.endpoint)

        for page in range(1, self._max_pages + 1):
            data = self._request(url, params=params)
            results, next_link = self._unwrap(data)
            records.extend(results)
            logger.debug("ByD %s page %d: %d records", query.entity_name, page, len(results))
            if not next_link:
                logger.info("ByD %s retrieved: %d records", query.entity_name, len(records))
                return records
            # __next carries its own query string ($skiptoken, $filter, ...)
            url = urljoin(url, next_link)
            params = None

        raise ByDServiceError(
            f"ByD {query.entity_name} exceeded {self._max_pages} pages; raise BYD_MAX_PAGES"
        )

    def close(self) -> None:
        self._session.close()


@lru_cache()
def get_byd_service() -> ByDService:
    """Dependency: process-wide ByDService so every run shares one connection pool."""
    return ByDService()


def close_byd_service() -> None:
    """Close the shared session (app shutdown) if one was created."""
    if get_byd_service.cache_info().currsize:
        get_byd_service().close()
        get_byd_service.cache_clear()
