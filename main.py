#!/usr/bin/env python3
"""
Main script demonstrating the Claro catalog view states.

This script shows how to:
1. List and filter products from the catalog API
2. Load a product's detail bundle with its reviews
3. Page through the standalone reviews listing
"""

import asyncio
import logging

from claro.client import CatalogClient
from claro.database import get_engine, init_db
from claro.logging_config import setup_logging
from claro.state import (
    ProductDetailStateMachine,
    ProductListStateMachine,
    ReviewsListStateMachine,
)
from claro.storage import DeviceIdProvider, FavoritesStore, LanguagePreference

logger = logging.getLogger("claro.demo")


async def browse_products(client: CatalogClient, favorites: FavoritesStore, category: str):
    """List the first page of a category and one more page."""
    print(f"\n{'='*50}")
    print(f"Products in: {category}")
    print("=" * 50)

    async with ProductListStateMachine(client, favorites) as products:
        await products.apply_filters(
            selected_category=category,
            sort_by="averageRating",
            sort_dir="DESC",
            min_rating=None,
            min_price="",
            max_price="",
        )
        await products.load_more()

        state = products.state
        if state.error:
            print(f"Error: {state.error}")

        print(f"Loaded {len(state.items)} products (more: {state.has_more})")
        for product in state.items[:5]:
            star = "*" if state.is_favorite(product.id) else " "
            print(f"\n{star} {product.name[:60]}")
            print(f"  ID: {product.id}")
            print(f"  Price: {product.price}" if product.price else "  Price: N/A")
            print(f"  Rating: {product.average_rating} ({product.review_count} reviews)")

        return state.items


async def show_product(
    client: CatalogClient,
    favorites: FavoritesStore,
    device_ids: DeviceIdProvider,
    product_id: int,
    lang: str,
):
    """Load and print one product with its top reviews."""
    print(f"\n{'='*50}")
    print(f"Product {product_id} ({lang})")
    print("=" * 50)

    async with ProductDetailStateMachine(client, favorites, device_ids, lang=lang) as detail:
        await detail.load(product_id)
        state = detail.state

        if state.error or state.product is None:
            print(f"Error: {state.error}")
            return

        print(f"Name: {state.product.name}")
        print(f"Description: {(state.display_description() or '')[:200]}")
        if state.review_summary and state.review_summary.takeaway:
            print(f"Takeaway: {state.review_summary.takeaway}")
            print(f"Pros: {', '.join(state.review_summary.pros)}")
            print(f"Cons: {', '.join(state.review_summary.cons)}")

        for review in state.reviews[:5]:
            print(f"\n- {review.rating}/5 by {review.reviewer_name or 'Anonymous'}")
            print(f"  {(state.display_comment(review) or '')[:120]}")
            print(f"  Helpful: {review.helpful_count or 0}")


async def show_recent_reviews(client: CatalogClient, device_ids: DeviceIdProvider, product_id: int):
    """Print the newest reviews of a product."""
    async with ReviewsListStateMachine(client, device_ids) as reviews:
        await reviews.load(product_id)
        await reviews.load_more()
        print(f"\nNewest reviews loaded: {len(reviews.state.items)}")


async def main():
    """Main entry point."""
    setup_logging()

    # Example category
    category = "Electronics"

    print("\n" + "=" * 60)
    print("Claro Catalog Demo")
    print("=" * 60)

    engine = get_engine()
    await init_db(engine)

    favorites = FavoritesStore(engine)
    await favorites.load()
    device_ids = DeviceIdProvider(engine)
    lang = await LanguagePreference(engine).get()

    async with CatalogClient() as client:
        try:
            items = await browse_products(client, favorites, category)
        except Exception as e:
            logger.error("Listing products failed: %s", e)
            items = []

        if items:
            await show_product(client, favorites, device_ids, items[0].id, lang)
            await show_recent_reviews(client, device_ids, items[0].id)

    await engine.dispose()

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
