"""
Catalog aggregation.

Joins products with their category and their variant sub-collection into
`ProductWithVariants` rows, seeding the default categories the first time
the category collection is found empty.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import ValidationError

from database import now_iso
from errors import NotFound, ReadFailure, StorefrontError
from schemas import Category, Product, ProductVariant, ProductWithVariants

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

DEFAULT_CATEGORIES = [
    {"name": "Foods", "slug": "foods", "description": "Natural food products and nutrition"},
    {"name": "Naturals", "slug": "naturals", "description": "Natural personal care and herbal products"},
]


def uncategorized() -> Category:
    return Category(id="", name="Uncategorized", slug="uncategorized", description="", created_at="")


def category_from_doc(doc: dict) -> Category:
    # empty strings count as unset, same as missing keys
    return Category(
        id=doc.get("id", ""),
        name=doc.get("name") or "Uncategorized",
        slug=doc.get("slug") or "uncategorized",
        description=doc.get("description") or "",
        created_at=doc.get("created_at") or "",
    )


@dataclass
class CatalogView:
    products: List[ProductWithVariants] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CategoryFilterResult:
    products: List[ProductWithVariants]
    counts: Dict[str, int]
    total: int


class CatalogAggregator:
    def __init__(self, gateway):
        self.gateway = gateway

    def load_categories(self) -> List[Category]:
        """Fetch every category, seeding the defaults when there are none.

        Two clients loading an empty store at the same moment can both seed;
        duplicate default rows are tolerated.
        """
        docs = self.gateway.list_categories()
        if not docs:
            logger.info("No categories found, seeding %d defaults", len(DEFAULT_CATEGORIES))
            for c in DEFAULT_CATEGORIES:
                self.gateway.create_category({**c, "created_at": now_iso()})
            docs = self.gateway.list_categories()
        return [category_from_doc(d) for d in docs]

    def category_map(self) -> Dict[str, Category]:
        return {c.id: c for c in self.load_categories()}

    def join(self, product_doc: dict, categories: Dict[str, Category]) -> ProductWithVariants:
        try:
            product = Product.model_validate(product_doc)
            category = categories.get(product.category_id) if product.category_id else None
            variants = [
                ProductVariant.model_validate({"product_id": product.id, **v})
                for v in self.gateway.list_variants(product.id)
            ]
        except ValidationError as e:
            raise ReadFailure(f"Malformed record for product {product_doc.get('id')}") from e
        return ProductWithVariants(
            **product.model_dump(),
            category=category or uncategorized(),
            variants=variants,
        )

    def load_products(self, active_only: bool = True) -> List[ProductWithVariants]:
        """Load and join products. Raises on any failed read; no partial result."""
        categories = self.category_map()
        docs = self.gateway.list_products(active_only=active_only)
        if active_only:
            docs = [d for d in docs if d.get("is_active") is True]
        return [self.join(d, categories) for d in docs]

    def load_catalog(self, active_only: bool = True) -> CatalogView:
        try:
            return CatalogView(products=self.load_products(active_only=active_only))
        except StorefrontError as e:
            logger.error("Error loading products: %s", e.message)
            return CatalogView(products=[], error=e.message)

    def load_product(self, product_id: str) -> ProductWithVariants:
        doc = self.gateway.get_product(product_id)
        if doc is None:
            raise NotFound("Product not found")
        return self.join(doc, self.category_map())


def filter_by_category(products: List[ProductWithVariants], slug: str = ALL_CATEGORIES) -> CategoryFilterResult:
    """Select products in the category with `slug` (case-insensitive) and count every category."""
    counts: Dict[str, int] = {}
    for p in products:
        key = p.category.slug.lower()
        counts[key] = counts.get(key, 0) + 1

    wanted = (slug or ALL_CATEGORIES).lower()
    if wanted == ALL_CATEGORIES:
        selected = list(products)
    else:
        selected = [p for p in products if p.category.slug.lower() == wanted]
    return CategoryFilterResult(products=selected, counts=counts, total=len(products))
