import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from ..catalog.firestore import CatalogRepository, get_catalog
from ..config import get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/seed-faq", tags=["faq"])

NOT_CONFIGURED = "Firestore not configured. Set FIRESTORE_PROJECT_ID."


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@router.get("")
async def search_faq(
    query: Optional[str] = None,
    catalog: Optional[CatalogRepository] = Depends(get_catalog),
):
    if not query:
        return _fail(400, "Query parameter required")
    if catalog is None:
        return _fail(500, NOT_CONFIGURED)
    try:
        faq = await catalog.search_faq(query)
    except Exception as e:
        logger.error("[FAQ] Search failed: %s", e)
        return _fail(500, str(e) or "Error searching FAQ")
    if faq is None:
        return _fail(404, "No FAQ found matching your query")
    return {"success": True, "data": faq.model_dump()}


@router.post("")
async def seed_faq(
    reseed: bool = False,
    authorization: Optional[str] = Header(default=None),
    catalog: Optional[CatalogRepository] = Depends(get_catalog),
):
    token = get_config().seed_token
    if token and authorization != f"Bearer {token}":
        logger.warning("[FAQ] Rejected seed request with bad token")
        return _fail(401, "Unauthorized")
    if catalog is None:
        return _fail(500, NOT_CONFIGURED)

    try:
        deleted = await catalog.delete_all_faq() if reseed else 0
        count = await catalog.seed_faq()
    except Exception as e:
        logger.exception("[FAQ] Seeding failed")
        return _fail(500, str(e) or "Failed to seed FAQ")

    return {
        "success": True,
        "message": f"Successfully seeded {count} Thai electronics FAQs",
        "data": {"success": True, "count": count, "deleted": deleted},
    }
