"""View-state machines for the catalog screens."""

from .product_list import ListViewState, ProductListStateMachine, normalize_category
from .product_detail import DetailViewState, ProductDetailStateMachine
from .reviews_list import ReviewsListStateMachine, ReviewsViewState

__all__ = [
    "ListViewState",
    "ProductListStateMachine",
    "normalize_category",
    "DetailViewState",
    "ProductDetailStateMachine",
    "ReviewsListStateMachine",
    "ReviewsViewState",
]
