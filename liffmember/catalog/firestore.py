"""Firestore-backed FAQ and product catalog."""

import logging
from typing import Optional

from google.cloud import firestore

from ..config import get_config
from .faq import FAQ, best_faq
from .products import Product
from .seed_data import SEED_FAQS

logger = logging.getLogger(__name__)

FAQ_COLLECTION = "FAQ"
PRODUCTS_COLLECTION = "products"


class CatalogRepository:
    def __init__(self, db: firestore.AsyncClient) -> None:
        self.db = db

    async def list_faq(self) -> list[FAQ]:
        faqs = []
        async for doc in self.db.collection(FAQ_COLLECTION).stream():
            data = doc.to_dict() or {}
            data["id"] = doc.id
            faqs.append(FAQ(**data))
        return faqs

    async def list_products(self) -> list[Product]:
        products = []
        async for doc in self.db.collection(PRODUCTS_COLLECTION).stream():
            data = doc.to_dict() or {}
            data["id"] = doc.id
            products.append(Product.model_validate(data))
        return products

    async def search_faq(self, query: str) -> Optional[FAQ]:
        return best_faq(query, await self.list_faq())

    async def seed_faq(self) -> int:
        batch = self.db.batch()
        for faq in SEED_FAQS:
            ref = self.db.collection(FAQ_COLLECTION).document()
            batch.set(ref, {"id": ref.id, **faq, "createdAt": firestore.SERVER_TIMESTAMP})
        await batch.commit()
        logger.info("Seeded %d FAQ entries", len(SEED_FAQS))
        return len(SEED_FAQS)

    async def delete_all_faq(self) -> int:
        batch = self.db.batch()
        count = 0
        async for doc in self.db.collection(FAQ_COLLECTION).stream():
            batch.delete(doc.reference)
            count += 1
        if count:
            await batch.commit()
        logger.info("Deleted %d FAQ entries", count)
        return count


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

_repository: Optional[CatalogRepository] = None


def get_catalog() -> Optional[CatalogRepository]:
    """Shared repository, or None when no Firestore project is configured."""
    global _repository
    if _repository is None:
        db_cfg = get_config().database
        if not db_cfg.firestore_project_id:
            return None
        client = firestore.AsyncClient(
            project=db_cfg.firestore_project_id,
            database=db_cfg.firestore_database,
        )
        _repository = CatalogRepository(client)
    return _repository


def reset_catalog() -> None:
    global _repository
    _repository = None
