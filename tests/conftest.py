"""Shared test fixtures."""

import asyncio
from typing import Optional

import pytest

from claro.client import CatalogApi
from claro.config import StateConfig
from claro.errors import NotFound
from claro.models import (
    CreateReviewRequest,
    HelpfulVote,
    PageEnvelope,
    ProductDetail,
    ProductSummary,
    Review,
    ReviewSummary,
)
from claro.storage import DeviceIdProvider, FavoritesStore


def make_product(product_id: int, **fields) -> ProductDetail:
    """Create a product detail with sensible defaults."""
    data = {
        "id": product_id,
        "name": f"Product {product_id}",
        "description": f"Description {product_id}",
        "category": "ELECTRONICS",
        "price": "10.00",
        "average_rating": 4.0,
        "review_count": 0,
    }
    data.update(fields)
    return ProductDetail(**data)


def make_review(review_id: int, product_id: int = 1, **fields) -> Review:
    """Create a review with sensible defaults."""
    data = {
        "id": review_id,
        "product_id": product_id,
        "comment": f"Comment {review_id}",
        "rating": 4,
        "reviewer_name": "Tester",
        "device_id": "device-x",
        "helpful_count": 0,
        "created_at": "2024-01-01T00:00:00Z",
    }
    data.update(fields)
    return Review(**data)


def make_page(content: list, number: Optional[int] = 0, last: Optional[bool] = True) -> PageEnvelope:
    return PageEnvelope(content=content, number=number, last=last)


class FakeCatalog(CatalogApi):
    """In-memory CatalogApi recording every call."""

    def __init__(self):
        self.products: dict[int, ProductDetail] = {}
        self.product_pages: dict[int, PageEnvelope] = {}
        self.review_pages: dict[int, PageEnvelope] = {}
        self.summary = ReviewSummary(product_id=1, source="ai", takeaway="Solid", pros=["battery"])
        self.translate_response: Optional[list] = None
        self.helpful_counts: dict[int, int] = {}
        self.failures: dict[str, Exception] = {}
        self.failing_product_ids: set[int] = set()
        self.product_gates: dict[int, asyncio.Event] = {}
        self.submit_gate: Optional[asyncio.Event] = None
        self.cancelled_product_ids: set[int] = set()
        self.calls: list[tuple[str, dict]] = []
        self._next_review_id = 1000

    def calls_to(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def _record(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))
        if name in self.failures:
            raise self.failures[name]

    async def fetch_products(
        self,
        page,
        size,
        sort_by,
        sort_dir,
        category=None,
        search=None,
        min_rating=None,
        min_price=None,
        max_price=None,
    ) -> PageEnvelope[ProductSummary]:
        self._record(
            "fetch_products",
            page=page,
            size=size,
            sort_by=sort_by,
            sort_dir=sort_dir,
            category=category,
            search=search,
            min_rating=min_rating,
            min_price=min_price,
            max_price=max_price,
        )
        return self.product_pages.get(page, make_page([], number=page, last=True))

    async def fetch_product_by_id(self, product_id) -> ProductDetail:
        self._record("fetch_product_by_id", product_id=product_id)
        if product_id in self.product_gates:
            try:
                await self.product_gates[product_id].wait()
            except asyncio.CancelledError:
                self.cancelled_product_ids.add(product_id)
                raise
        if product_id in self.failing_product_ids or product_id not in self.products:
            raise NotFound(f"Product {product_id} not found", status_code=404)
        return self.products[product_id]

    async def fetch_review_summary(self, product_id, limit, lang) -> ReviewSummary:
        self._record("fetch_review_summary", product_id=product_id, limit=limit, lang=lang)
        return self.summary

    async def fetch_reviews(
        self, product_id, page, size, sort_by, sort_dir, min_rating=None
    ) -> PageEnvelope[Review]:
        self._record(
            "fetch_reviews",
            product_id=product_id,
            page=page,
            size=size,
            sort_by=sort_by,
            sort_dir=sort_dir,
            min_rating=min_rating,
        )
        return self.review_pages.get(page, make_page([], number=page, last=True))

    async def submit_review(self, request: CreateReviewRequest) -> Review:
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        self._record("submit_review", request=request)
        self._next_review_id += 1
        return Review(
            id=self._next_review_id,
            product_id=request.product_id,
            comment=request.comment,
            rating=request.rating,
            reviewer_name=request.reviewer_name,
            device_id=request.device_id,
            helpful_count=0,
            created_at="2024-06-01T12:00:00Z",
        )

    async def toggle_helpful(self, review_id, device_id) -> HelpfulVote:
        self._record("toggle_helpful", review_id=review_id, device_id=device_id)
        count = self.helpful_counts.get(review_id, 0) + 1
        self.helpful_counts[review_id] = count
        return HelpfulVote(review_id=review_id, helpful_count=count, helpful_by_me=True)

    async def translate_batch(self, lang, texts) -> list[str]:
        self._record("translate_batch", lang=lang, texts=list(texts))
        if self.translate_response is not None:
            return list(self.translate_response)
        return [f"[{lang}] {text}" for text in texts]


@pytest.fixture
def catalog():
    """Fake catalog API."""
    return FakeCatalog()


@pytest.fixture
def favorites():
    """Memory-only favorites store."""
    return FavoritesStore()


@pytest.fixture
def device_ids():
    """Memory-only device id provider."""
    return DeviceIdProvider()


@pytest.fixture
def settings():
    """Short delays so debounce and reconcile run quickly."""
    return StateConfig(search_debounce=0.05, review_refresh_delay=0.05)
