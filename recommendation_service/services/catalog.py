from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Dict, Iterable, List, Optional, Union

from recommendation_service.models.recommender import Product


class ProductCatalog:
    """Insertion-ordered product repository (oldest first)."""
    def __init__(self, products: Optional[Iterable[Product]] = None) -> None:
        self._products: Dict[str, Product] = {}
        self._lock = asyncio.Lock()
        for product in products or ():
            self._products[product.id] = product

    @classmethod
    def from_json(cls, path: Union[str, pathlib.Path]) -> "ProductCatalog":
        """Load a JSON array of product objects, oldest first."""
        raw = json.loads(pathlib.Path(path).expanduser().read_text())
        return cls(Product.model_validate(p) for p in raw)

    def __len__(self) -> int:
        return len(self._products)

    async def add(self, product: Product) -> bool:
        """Insert or replace `product`; True when the id was new."""
        async with self._lock:
            created = product.id not in self._products
            self._products[product.id] = product
        return created

    async def list_products(self) -> List[Product]:
        return list(self._products.values())
