"""CIRRUS — GCP Cloud Billing Catalog Client.

Handles API-key authentication, retry, and ``nextPageToken`` pagination for
the public catalog endpoints.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.config import settings
from app.connectors.gcp.transformer import to_service, to_sku
from app.core.exceptions import CatalogAPIError
from app.core.logging import get_logger
from app.models.catalog_models import PricingInfo, Service, Sku
from app.sync.source import CatalogSource

logger = get_logger("gcp.client")

RETRY_BASE_DELAY = 2  # seconds


class GCPCatalogClient(CatalogSource):
    """Async HTTP client for the Cloud Billing Catalog API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        page_size: int | None = None,
        max_retries: int | None = None,
    ):
        self.api_key = api_key or settings.gcp_api_key
        self.base_url = (base_url or settings.gcp_catalog_base_url).rstrip("/")
        self.page_size = page_size or settings.gcp_page_size
        self.max_retries = max_retries or settings.catalog_max_retries
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.catalog_request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "GCPCatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Core Request Method ──

    async def _request(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET with retry on rate limiting, server errors and transport errors."""
        params = dict(params)
        if self.api_key:
            params["key"] = self.api_key

        client = await self._get_client()

        for attempt in range(1, self.max_retries + 1):
            wait = RETRY_BASE_DELAY * (2 ** (attempt - 1))
            try:
                resp = await client.get(url, params=params)

                if resp.status_code == 429 and attempt < self.max_retries:
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{self.max_retries})",
                        extra={"status_code": 429},
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if attempt < self.max_retries and status >= 500:
                    logger.warning(
                        f"Server error {status}. Retrying in {wait}s",
                        extra={"status_code": status},
                    )
                    await asyncio.sleep(wait)
                    continue

                try:
                    body = e.response.json()
                except ValueError:
                    body = {}
                error_msg = (body.get("error") or {}).get("message", str(e))
                raise CatalogAPIError(error_msg, status_code=status) from e

            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise CatalogAPIError(
                    f"Connection failed after {self.max_retries} attempts: {e}"
                ) from e

        raise CatalogAPIError("Max retries exhausted")

    # ── Pagination ──

    async def _paginated_get(self, path: str, items_key: str) -> List[Dict[str, Any]]:
        """Follow ``nextPageToken`` until the listing is exhausted."""
        url = f"{self.base_url}/{path}"
        all_items: List[Dict[str, Any]] = []
        page_token = ""

        while True:
            params: Dict[str, Any] = {"pageSize": self.page_size}
            if page_token:
                params["pageToken"] = page_token
            result = await self._request(url, params)
            all_items.extend(result.get(items_key, []))

            page_token = result.get("nextPageToken", "")
            if not page_token:
                break

        logger.info(f"Fetched {len(all_items)} {items_key} from {path}")
        return all_items

    # ── Catalog Source ──

    async def list_services(self) -> List[Service]:
        raw_services = await self._paginated_get("services", "services")
        return [to_service(raw) for raw in raw_services]

    async def list_skus(self, service_id: str) -> Tuple[List[Sku], List[PricingInfo]]:
        raw_skus = await self._paginated_get(f"services/{service_id}/skus", "skus")
        skus: List[Sku] = []
        prices: List[PricingInfo] = []
        for raw in raw_skus:
            sku, sku_prices = to_sku(raw, service_id)
            skus.append(sku)
            prices.extend(sku_prices)
        return skus, prices
