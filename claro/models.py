"""Data models for catalog products, reviews and page envelopes."""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Immutable DTO read from and written to the camelCase JSON API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Review(ApiModel):
    """Review data model."""

    id: int = Field(..., description="Review ID, unique across products")
    product_id: int = Field(..., description="Product the review belongs to")
    comment: Optional[str] = None
    rating: Optional[int] = Field(None, description="Star rating 1-5")
    reviewer_name: Optional[str] = None
    device_id: Optional[str] = Field(None, description="Installation that wrote the review")
    helpful_count: Optional[int] = Field(None, ge=0, description="Helpful votes")
    created_at: Optional[str] = Field(None, description="ISO-8601 creation timestamp")


class ProductSummary(ApiModel):
    """Product as it appears in list pages."""

    id: int = Field(..., description="Stable product ID")
    name: str = Field(..., description="Product name")
    description: Optional[str] = None
    category: Optional[str] = Field(None, description="Canonical category token")
    price: Optional[str] = Field(None, description="Decimal price as sent by the server")
    image_urls: Optional[list[str]] = None
    average_rating: Optional[float] = None
    review_count: Optional[int] = None


class ProductDetail(ProductSummary):
    """Product detail with its embedded (possibly stale) reviews."""

    reviews: Optional[list[Review]] = None

    def to_summary(self) -> ProductSummary:
        """Drop the embedded reviews, keeping every summary field."""
        return ProductSummary(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            price=self.price,
            image_urls=self.image_urls,
            average_rating=self.average_rating,
            review_count=self.review_count,
        )


class PageEnvelope(ApiModel, Generic[T]):
    """One page of a paginated collection."""

    content: list[T] = Field(default_factory=list)
    number: Optional[int] = Field(None, description="0-based page index")
    size: Optional[int] = None
    total_elements: Optional[int] = None
    total_pages: Optional[int] = None
    last: Optional[bool] = None
    first: Optional[bool] = None


class ReviewSummary(ApiModel):
    """Aggregated insight over a bounded sample of reviews."""

    product_id: Optional[int] = None
    lang: Optional[str] = None
    source: Optional[str] = None
    average_rating: Optional[float] = None
    review_count: Optional[int] = None
    review_count_used: Optional[int] = None
    takeaway: Optional[str] = None
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    top_topics: list[str] = Field(default_factory=list)
    generated_at: Optional[str] = None

    @field_validator("pros", "cons", "top_topics", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class HelpfulVote(ApiModel):
    """Result of toggling a helpful vote."""

    review_id: int
    helpful_count: int
    helpful_by_me: bool = False


class CreateReviewRequest(ApiModel):
    """Payload for submitting a review."""

    product_id: int
    comment: Optional[str] = None
    rating: int
    reviewer_name: Optional[str] = None
    device_id: str


class TranslateRequest(ApiModel):
    """Payload for a batch translation."""

    lang: str
    texts: list[str]
