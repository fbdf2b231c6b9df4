"""Claro catalog REST API client."""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Optional

import httpx

from .config import config
from .errors import CatalogError, NetworkFailure, NotFound, ValidationError
from .models import (
    CreateReviewRequest,
    HelpfulVote,
    PageEnvelope,
    ProductDetail,
    ProductSummary,
    Review,
    ReviewSummary,
    TranslateRequest,
)

logger = logging.getLogger(__name__)


class CatalogApi(ABC):
    """Remote catalog, review and translation operations consumed by the view states."""

    @abstractmethod
    async def fetch_products(
        self,
        page: int,
        size: int,
        sort_by: str,
        sort_dir: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_rating: Optional[int] = None,
        min_price: Optional[str] = None,
        max_price: Optional[str] = None,
    ) -> PageEnvelope[ProductSummary]:
        """Fetch one page of server-side filtered and sorted products."""

    @abstractmethod
    async def fetch_product_by_id(self, product_id: int) -> ProductDetail:
        """Fetch product detail; raises NotFound for unknown ids."""

    @abstractmethod
    async def fetch_review_summary(
        self, product_id: int, limit: int, lang: str
    ) -> ReviewSummary:
        """Fetch the aggregated review insight for a product."""

    @abstractmethod
    async def fetch_reviews(
        self,
        product_id: int,
        page: int,
        size: int,
        sort_by: str,
        sort_dir: str,
        min_rating: Optional[int] = None,
    ) -> PageEnvelope[Review]:
        """Fetch one page of a product's reviews."""

    @abstractmethod
    async def submit_review(self, request: CreateReviewRequest) -> Review:
        """Create a review; raises ValidationError on a rejected rating."""

    @abstractmethod
    async def toggle_helpful(self, review_id: int, device_id: str) -> HelpfulVote:
        """Toggle this device's helpful vote on a review."""

    @abstractmethod
    async def translate_batch(self, lang: str, texts: list[str]) -> list[str]:
        """Translate texts to lang, preserving order."""


class CatalogClient(CatalogApi):
    """Client for the Claro catalog REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = replace(config, base_url=base_url) if base_url is not None else config
        self.base_url = self.config.base_url.strip().rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the HTTP client."""
        if not self.config.is_configured:
            raise ValueError(
                "Catalog API base URL not configured. "
                "Set CLARO_API_BASE_URL in .env file."
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout,
            headers=self.config.auth_headers,
            transport=self._transport,
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not started. Use 'async with' or call start() first.")
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        """Send a request and decode the JSON body, mapping failures to CatalogError."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self.client.request(method, path, params=params, json=json)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Request to {path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"Request to {path} failed: {e}") from e
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _status_error(response: httpx.Response) -> CatalogError:
        """Build the matching CatalogError for a non-2xx response."""
        status = response.status_code
        message = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
        message = message or f"HTTP {status}"

        if status == 404:
            return NotFound(message, status_code=status)
        if status in (400, 422):
            return ValidationError(message, status_code=status)
        return CatalogError(message, status_code=status)

    async def fetch_products(
        self,
        page: int,
        size: int,
        sort_by: str,
        sort_dir: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_rating: Optional[int] = None,
        min_price: Optional[str] = None,
        max_price: Optional[str] = None,
    ) -> PageEnvelope[ProductSummary]:
        """
        Fetch one page of products.

        Args:
            page: 0-based page index
            size: Page size
            sort_by: Server sort field (reviewCount, price, averageRating, name)
            sort_dir: ASC or DESC
            category: Canonical category token
            search: Substring matched against name and description
            min_rating: Minimum average rating
            min_price: Minimum decimal price
            max_price: Maximum decimal price

        Returns:
            Page envelope of product summaries
        """
        params = {
            "page": page,
            "size": size,
            "sortBy": sort_by,
            "sortDir": sort_dir,
            "category": category,
            "search": search,
            "minRating": min_rating,
            "minPrice": min_price,
            "maxPrice": max_price,
        }
        data = await self._request("GET", "/api/products", params=params)
        return PageEnvelope[ProductSummary].model_validate(data or {})

    async def fetch_product_by_id(self, product_id: int) -> ProductDetail:
        """Fetch a single product with its embedded reviews."""
        data = await self._request("GET", f"/api/products/{product_id}")
        if data is None:
            raise NotFound(f"Product {product_id} not found", status_code=404)
        return ProductDetail.model_validate(data)

    async def fetch_review_summary(
        self, product_id: int, limit: int, lang: str
    ) -> ReviewSummary:
        """Fetch the review insight computed over the top `limit` reviews."""
        data = await self._request(
            "GET",
            f"/api/products/{product_id}/review-summary",
            params={"limit": limit, "lang": lang},
        )
        return ReviewSummary.model_validate(data or {})

    async def fetch_reviews(
        self,
        product_id: int,
        page: int,
        size: int,
        sort_by: str,
        sort_dir: str,
        min_rating: Optional[int] = None,
    ) -> PageEnvelope[Review]:
        """Fetch one page of a product's reviews."""
        params = {
            "page": page,
            "size": size,
            "sortBy": sort_by,
            "sortDir": sort_dir,
            "minRating": min_rating,
        }
        data = await self._request(
            "GET", f"/api/reviews/product/{product_id}", params=params
        )
        return PageEnvelope[Review].model_validate(data or {})

    async def submit_review(self, request: CreateReviewRequest) -> Review:
        """Create a review and return it as stored by the server."""
        logger.debug("Submitting review for product %s", request.product_id)
        data = await self._request(
            "POST", "/api/reviews", json=request.model_dump(by_alias=True)
        )
        return Review.model_validate(data)

    async def toggle_helpful(self, review_id: int, device_id: str) -> HelpfulVote:
        """Toggle the helpful vote of device_id on a review."""
        data = await self._request(
            "POST",
            f"/api/reviews/{review_id}/helpful",
            params={"deviceId": device_id},
        )
        return HelpfulVote.model_validate(data)

    async def translate_batch(self, lang: str, texts: list[str]) -> list[str]:
        """
        Translate texts in one call.

        Returns:
            Translations in request order; empty if the server sent none
        """
        if not texts:
            return []

        body = TranslateRequest(lang=lang, texts=texts).model_dump(by_alias=True)
        data = await self._request("POST", "/api/translate", json=body)
        if not isinstance(data, dict):
            return []
        return list(data.get("translations") or [])
