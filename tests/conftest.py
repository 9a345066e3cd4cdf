"""Pytest configuration and shared fixtures."""
import asyncio
import copy
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Optional

import pytest

from liffmember import config as config_module
from liffmember.catalog import firestore as catalog_module
from liffmember.catalog.faq import FAQ
from liffmember.catalog.firestore import CatalogRepository
from liffmember.catalog.products import Product
from liffmember.catalog.seed_data import SEED_FAQS
from liffmember.config import AppConfig, LLMConfig, RateLimitConfig
from liffmember.conversation.backends import MemoryStorageBackend
from liffmember.conversation.storage import ConversationStore
from liffmember.llm.base import LLMProvider
from liffmember.llm.registry import reset_providers


@pytest.fixture(autouse=True)
def app_config(monkeypatch):
    """Isolated in-memory config; never touches ~/.liffmember."""
    cfg = AppConfig(
        llm=LLMConfig(provider="gemini", gemini_api_key="", guided_fallback=False),
        rate_limit=RateLimitConfig(enabled=False),
    )
    monkeypatch.setattr(config_module, "_current_config", cfg)
    reset_providers()
    catalog_module.reset_catalog()
    yield cfg
    reset_providers()


@pytest.fixture
def memory_store():
    """Store over a primary and a session tier, both in memory."""
    primary = MemoryStorageBackend(name="local")
    session = MemoryStorageBackend(name="session")
    return ConversationStore([primary, session])


# ---------------------------------------------------------------------------
# LLM fakes
# ---------------------------------------------------------------------------

class ScriptedProvider(LLMProvider):
    """Streams fixed tokens, optionally failing before or after them."""

    name = "gemini"

    def __init__(self, tokens: list[str], error: Optional[Exception] = None, fail_after: int = 0):
        self.tokens = tokens
        self.error = error
        self.fail_after = fail_after
        self.calls: list[list[dict]] = []
        self.call_kwargs: list[dict] = []

    async def complete(self, messages: list[dict], model: str, **kwargs) -> str:
        return "".join(self.tokens)

    async def stream(self, messages: list[dict], model: str, **kwargs) -> AsyncGenerator[str, None]:
        self.calls.append(messages)
        self.call_kwargs.append(kwargs)
        for i, token in enumerate(self.tokens):
            if self.error is not None and i == self.fail_after:
                raise self.error
            yield token
        if self.error is not None and self.fail_after >= len(self.tokens):
            raise self.error


# ---------------------------------------------------------------------------
# Catalog fake
# ---------------------------------------------------------------------------

class FakeCatalog(CatalogRepository):
    def __init__(self, faqs: Optional[list[FAQ]] = None, products: Optional[list[Product]] = None,
                 broken: bool = False):
        super().__init__(db=None)
        self.faqs = list(faqs or [])
        self.products = list(products or [])
        self.broken = broken

    async def list_faq(self) -> list[FAQ]:
        if self.broken:
            raise RuntimeError("firestore unavailable")
        return list(self.faqs)

    async def list_products(self) -> list[Product]:
        if self.broken:
            raise RuntimeError("firestore unavailable")
        return list(self.products)

    async def seed_faq(self) -> int:
        self.faqs.extend(FAQ(id=f"seed-{i}", **faq) for i, faq in enumerate(SEED_FAQS))
        return len(SEED_FAQS)

    async def delete_all_faq(self) -> int:
        count = len(self.faqs)
        self.faqs = []
        return count


# ---------------------------------------------------------------------------
# MongoDB fake (just the calls the rewards repository makes)
# ---------------------------------------------------------------------------

def _matches(doc: dict, query: dict) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


def _apply(doc: dict, update: dict, inserting: bool = False) -> None:
    for k, v in update.get("$set", {}).items():
        doc[k] = v
    for k in update.get("$unset", {}):
        doc.pop(k, None)
    for k, v in update.get("$inc", {}).items():
        doc[k] = doc.get(k, 0) + v
    if inserting:
        for k, v in update.get("$setOnInsert", {}).items():
            doc[k] = v


class FakeCollection:
    def __init__(self):
        self.docs: list[dict] = []
        self._next_id = 0
        self.fail_on: set[str] = set()

    async def _check(self, op: str) -> None:
        # Yield like a real driver so concurrent requests interleave
        await asyncio.sleep(0)
        if op in self.fail_on:
            raise RuntimeError(f"{op} failed")

    async def find_one(self, query: dict) -> Optional[dict]:
        await self._check("find_one")
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def find_one_and_update(self, query: dict, update: dict) -> Optional[dict]:
        await self._check("find_one_and_update")
        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                _apply(doc, update)
                return before
        return None

    async def insert_one(self, doc: dict) -> Any:
        await self._check("insert_one")
        self._next_id += 1
        stored = {"_id": self._next_id, **doc}
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=self._next_id)

    async def update_one(self, query: dict, update: dict, upsert: bool = False) -> Any:
        await self._check("update_one")
        for doc in self.docs:
            if _matches(doc, query):
                _apply(doc, update)
                return SimpleNamespace(matched_count=1)
        if upsert:
            doc = dict(query)
            _apply(doc, update, inserting=True)
            self.docs.append(doc)
        return SimpleNamespace(matched_count=0)

    async def delete_one(self, query: dict) -> Any:
        await self._check("delete_one")
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def mongo_db():
    return FakeDatabase()
