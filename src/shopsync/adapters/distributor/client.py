"""HTTP client for the distributor catalog API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from shopsync.adapters.http_resilience import ResilientClient, default_client_factory
from shopsync.config.distributor import DISTRIBUTOR_BASE_URL, get_distributor_config
from shopsync.config.sync import (
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    MAX_PAGE_SIZE,
)
from shopsync.domain.model import CatalogFilter, PageResult, SyncMode
from shopsync.domain.ports.fetching import CatalogFetcher

from .schema import ProductSyncRequest, ProductSyncResponse
from .translator import parse_page

if TYPE_CHECKING:
    from collections.abc import Callable

    from shopsync.config.distributor import DistributorConfig
    from shopsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

PRODUCT_SYNC_ENDPOINT = "product/sync"


def endpoint_url(config: ResilienceConfig, endpoint: str) -> str:
    base_url = config.base_url or DISTRIBUTOR_BASE_URL
    return f"{base_url.rstrip('/')}/{endpoint}"


class DistributorAPIError(RuntimeError):
    """Raised when the distributor answers with an application-level error."""


@dataclass(frozen=True, slots=True)
class ConnectionCheck:
    success: bool
    message: str


def build_sync_request(
    config: DistributorConfig,
    *,
    mode: SyncMode,
    page: int,
    page_size: int,
    catalog_filter: CatalogFilter | None = None,
) -> ProductSyncRequest:
    """Build the request body; page is at least 1 and rows is clamped to 1..1000."""

    request = ProductSyncRequest(
        api_id=config.api_id,
        locale=config.locale,
        sync_mode="F" if mode is SyncMode.FULL else "P",
        page=max(page, 1),
        rows=min(max(page_size, 1), MAX_PAGE_SIZE),
    )
    if catalog_filter is not None and catalog_filter.skus:
        request.item_sku_csv = ",".join(catalog_filter.skus)
    elif catalog_filter is not None and catalog_filter.categories:
        request.item_category_list = list(catalog_filter.categories)
    return request


@dataclass(slots=True)
class DistributorCatalogFetcher:
    """Fetch one catalog page per call.

    Transport retries (status codes, timeouts) happen inside the HTTP client; on top of that
    the whole request is attempted ``attempts`` times, ``retry_delay_seconds`` apart, so
    malformed JSON and API error payloads get retried too. When every attempt fails the
    result carries ``error`` instead of raising.
    """

    config: DistributorConfig = field(default_factory=get_distributor_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    attempts: int = DEFAULT_FETCH_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def __call__(
        self,
        *,
        mode: SyncMode,
        page: int,
        page_size: int,
        catalog_filter: CatalogFilter | None = None,
    ) -> PageResult:
        request = build_sync_request(
            self.config,
            mode=mode,
            page=page,
            page_size=page_size,
            catalog_filter=catalog_filter,
        )
        return asyncio.run(self._fetch_page_async(request))

    def check_connection(self) -> ConnectionCheck:
        """Ask for a single row of a partial sync."""

        request = build_sync_request(self.config, mode=SyncMode.PARTIAL, page=1, page_size=1)
        try:
            asyncio.run(self._request_once(request))
        except (httpx.HTTPError, DistributorAPIError, ValueError) as exc:
            return ConnectionCheck(success=False, message=f"Connection failed: {exc}")
        return ConnectionCheck(success=True, message="API connection successful")

    async def _fetch_page_async(self, request: ProductSyncRequest) -> PageResult:
        attempts = max(self.attempts, 1)
        last_error = "no attempt made"
        for attempt in range(1, attempts + 1):
            try:
                response = await self._request_once(request)
            except (httpx.HTTPError, DistributorAPIError, ValueError) as exc:
                last_error = _describe(exc)
                log.warning(
                    "Catalog page %d attempt %d/%d failed: %s",
                    request.page,
                    attempt,
                    attempts,
                    last_error,
                )
                if attempt < attempts and self.retry_delay_seconds > 0:
                    await asyncio.sleep(self.retry_delay_seconds)
                continue
            result = parse_page(
                response,
                requested_page=request.page,
                image_url_for=self.config.image_url_for,
            )
            log.info(
                "Fetched catalog page %d of %d (%d items)",
                result.page_number,
                result.total_pages,
                len(result.items),
            )
            return result

        log.error("Catalog page %d failed after %d attempts", request.page, attempts)
        return PageResult.failed(request.page, last_error)

    async def _request_once(self, request: ProductSyncRequest) -> ProductSyncResponse:
        resilience = self.config.resilience
        async with self.client_factory(resilience) as client:
            response = await client.post(
                endpoint_url(resilience, PRODUCT_SYNC_ENDPOINT),
                json=request.model_dump(exclude_none=True),
            )
        response.raise_for_status()

        payload: Any = response.json()
        if not isinstance(payload, dict):
            raise DistributorAPIError("Unexpected distributor response payload")

        parsed = ProductSyncResponse.model_validate(payload)
        if parsed.error and parsed.item_catalog is None:
            raise DistributorAPIError(f"API error: {parsed.error}")
        return parsed


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, ValidationError):
        return f"Invalid payload: {exc.error_count()} validation errors"
    if isinstance(exc, ValueError):
        return f"Invalid JSON response: {exc}"
    return str(exc) or type(exc).__name__


if TYPE_CHECKING:
    _fetcher_check: CatalogFetcher = DistributorCatalogFetcher()
