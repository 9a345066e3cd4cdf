import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..i18n import t

# Thai phrasings of "what do you sell / list / price / recommend"
PRODUCT_QUERY = re.compile(r"สินค้า|ขายอะไร|มีอะไร|รายการ|ราคา|แนะนำ", re.IGNORECASE)


class Product(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    name: str = ""
    sku: str = ""
    barcode: Optional[str] = None
    unit: str = ""
    size: str = ""
    img: Optional[str] = None
    promotion_price: float = Field(default=0, alias="promotionPrice")
    price_tier1: float = Field(default=0, alias="priceTier1")
    price_tier2: float = Field(default=0, alias="priceTier2")
    price_tier3: float = Field(default=0, alias="priceTier3")
    discount_per_piece: float = Field(default=0, alias="discountPerPiece")
    stock_quantity: int = Field(default=0, alias="stockQuantity")
    stock_status: str = Field(default="", alias="stockStatus")
    categories: Optional[str] = None
    fda_no: Optional[str] = Field(default=None, alias="FDA_No")
    markdown: Optional[str] = Field(default=None, alias="Markdown")


def score_product(words: list[str], product: Product) -> int:
    name = product.name.lower()
    categories = (product.categories or "").lower()
    markdown = (product.markdown or "").lower()

    score = 0
    for word in words:
        if word in name:
            score += 10
        if word in categories:
            score += 5
        if word in markdown:
            score += 3
        if word in product.sku or (product.barcode and word in product.barcode):
            score += 8
    return score


def rank_products(query: str, products: list[Product], limit: int = 10) -> list[Product]:
    words = query.lower().split()
    scored = [(score_product(words, p), p) for p in products]
    # sorted() is stable, so equal scores keep catalog order
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: s[0], reverse=True)
    return [p for _, p in ranked[:limit]]


def is_product_query(text: str) -> bool:
    return bool(PRODUCT_QUERY.search(text))


def _price(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_products_for_ai(products: list[Product], lang: str = "th") -> str:
    if not products:
        return t("catalog.no_products", lang)
    price = t("catalog.price", lang)
    category = t("catalog.category", lang)
    unspecified = t("catalog.unspecified", lang)
    return "\n".join(
        f"- {p.name} | {price}: {_price(p.promotion_price)}฿ | {category}: {p.categories or unspecified}"
        for p in products
    )
