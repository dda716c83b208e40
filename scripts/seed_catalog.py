#!/usr/bin/env python3
"""Seed storefront catalog script.

Creates the database schema and seeds facet terms, a demo owner with
live products, a hero slide and the website settings.

Usage:
    python scripts/seed_catalog.py --mode small
    python scripts/seed_catalog.py --mode full --owner-phone +919800000001
    python scripts/seed_catalog.py --facets-only
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete

from storefront.domain.base import new_id
from storefront.domain.entities import FacetTerm, HeroSlide, Product, User
from storefront.domain.state_machines import ProductStatus
from storefront.domain.value_objects import FacetKind, ListingStatus
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import Base, async_session_factory, engine
from storefront.infrastructure.models import (
    AdminModel,
    CodeSequenceModel,
    FacetTermModel,
    HeroSlideModel,
    ProductModel,
    UserModel,
    WebsiteSettingModel,
)

FACET_TERMS: dict[FacetKind, list[str]] = {
    FacetKind.PRODUCT_TYPES: ["Lehenga", "Saree", "Sherwani", "Gown", "Anarkali", "Jewellery"],
    FacetKind.OCCASIONS: ["Wedding", "Sangeet", "Reception", "Party", "Festive"],
    FacetKind.MATERIALS: ["Silk", "Velvet", "Georgette", "Chiffon", "Cotton"],
    FacetKind.CITIES: ["Mumbai", "Delhi", "Bengaluru", "Pune", "Jaipur"],
    FacetKind.CATEGORIES: ["Women", "Men", "Kids"],
}

COLORS: list[tuple[str, str]] = [
    ("Red", "#C0392B"),
    ("Maroon", "#800000"),
    ("Gold", "#D4AF37"),
    ("Ivory", "#FFFFF0"),
    ("Emerald", "#50C878"),
    ("Navy", "#000080"),
]

MODES = {"small": 20, "full": 120}


def build_facet_terms() -> list[FacetTerm]:
    """Build the default facet vocabulary."""
    terms = []
    for kind, names in FACET_TERMS.items():
        for order, name in enumerate(names):
            terms.append(FacetTerm(id=new_id(), kind=kind, name=name, display_order=order))
    for order, (name, hex) in enumerate(COLORS):
        terms.append(
            FacetTerm(id=new_id(), kind=FacetKind.COLORS, name=name, display_order=order, hex=hex)
        )
    return terms


def build_demo_products(
    owner: User,
    terms: list[FacetTerm],
    count: int,
    seed: int = 42,
) -> list[Product]:
    """Build approved demo listings tagged with random facet terms.

    Args:
        owner: Listing owner.
        terms: Facet vocabulary to tag products with.
        count: Number of products.
        seed: Random seed for deterministic output.

    Returns:
        Live products with sequential product codes.
    """
    rng = random.Random(seed)
    by_kind: dict[FacetKind, list[FacetTerm]] = {}
    for term in terms:
        by_kind.setdefault(term.kind, []).append(term)

    products = []
    for index in range(1, count + 1):
        facets = {
            kind: [term.id for term in rng.sample(options, k=1)]
            for kind, options in by_kind.items()
        }
        type_name = next(t.name for t in terms if t.id == facets[FacetKind.PRODUCT_TYPES][0])
        color_name = next(t.name for t in terms if t.id == facets[FacetKind.COLORS][0])
        price = rng.randrange(500, 15000, 50)
        listing = rng.choice(
            [ListingStatus.paid(settings.listing_fee), ListingStatus.free()]
        )
        products.append(
            Product.create(
                product_code=f"{settings.product_code_prefix}-{index:05d}",
                owner_user_id=owner.id,
                title=f"{color_name} {type_name}",
                price=price,
                status=ProductStatus.APPROVED,
                description=f"Demo {type_name.lower()} available for rent.",
                original_price=price * rng.choice([3, 4, 5]),
                images=[f"{settings.media_base_url}/products/demo/{index}.webp"],
                listing_status=listing,
                facets=facets,
            )
        )
    return products


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed(mode: str, owner_phone: str, facets_only: bool, clear: bool) -> dict:
    """Write the seed data in one transaction.

    Returns:
        Counts of created rows.
    """
    terms = build_facet_terms()
    result = {"deleted": 0, "facet_terms": len(terms), "products": 0, "slides": 0}

    async with async_session_factory() as session:
        if clear:
            for model in (ProductModel, HeroSlideModel, FacetTermModel):
                deleted = await session.execute(delete(model))
                result["deleted"] += deleted.rowcount or 0

        session.add_all(FacetTermModel.from_entity(term) for term in terms)
        await session.merge(WebsiteSettingModel(key="website_enabled", value="true"))

        if not facets_only:
            owner = User(id=new_id(), name="Demo Owner", phone=owner_phone, is_admin=True)
            session.add(UserModel.from_entity(owner))
            session.add(AdminModel(user_id=owner.id))

            products = build_demo_products(owner, terms, MODES[mode])
            session.add_all(
                ProductModel.from_entity(product, settings.currency_symbol)
                for product in products
            )
            result["products"] = len(products)
            await session.merge(
                CodeSequenceModel(name=settings.product_code_prefix, value=len(products))
            )

            slide = HeroSlide(
                id=new_id(),
                title="Rent the look",
                subtitle="Designer outfits for every occasion",
                image_url=f"{settings.media_base_url}/slides/demo/hero.webp",
                link_url="/products",
            )
            session.add(HeroSlideModel.from_entity(slide))
            result["slides"] = 1

        await session.commit()
    return result


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed storefront facet terms and demo content",
    )
    parser.add_argument(
        "--mode",
        choices=list(MODES),
        default="small",
        help="Demo catalog size: small (20 products) or full (120 products)",
    )
    parser.add_argument(
        "--owner-phone",
        default="+919800000001",
        help="Phone number of the demo owner (also made an admin)",
    )
    parser.add_argument(
        "--facets-only",
        action="store_true",
        help="Seed facet terms and settings only",
    )
    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Don't clear existing products, slides and facet terms",
    )

    args = parser.parse_args()

    print("=" * 60)
    print("Storefront Seeder")
    print("=" * 60)
    print(f"Mode: {args.mode}")
    print(f"Clear existing: {not args.no_clear}")
    print()

    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    result = await seed(
        mode=args.mode,
        owner_phone=args.owner_phone,
        facets_only=args.facets_only,
        clear=not args.no_clear,
    )
    print(f"  ✓ Deleted: {result['deleted']} existing rows")
    print(f"  ✓ Facet terms: {result['facet_terms']}")
    print(f"  ✓ Products: {result['products']}")
    print(f"  ✓ Slides: {result['slides']}")
    print()

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
