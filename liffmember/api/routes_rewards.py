import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import get_config
from ..i18n import t
from ..rewards.repository import RedeemStatus, RewardsRepository, get_rewards_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rewards"])

# status code and message key per redemption outcome
_OUTCOMES = {
    RedeemStatus.UNKNOWN_CODE: (400, "redeem.unknown_code"),
    RedeemStatus.ALREADY_USED: (400, "redeem.already_used"),
    RedeemStatus.BAD_POINTS: (500, "redeem.bad_points"),
}


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@router.get("/points")
async def get_points(
    lineId: Optional[str] = None,
    repo: Optional[RewardsRepository] = Depends(get_rewards_repository),
):
    lang = get_config().language
    if not lineId:
        return _fail(400, t("points.line_id_required", lang))
    if repo is None:
        logger.error("[Points] MONGODB_URI is not configured")
        return _fail(500, t("points.load_failed", lang))
    try:
        total = await repo.get_total_points(lineId)
    except Exception as e:
        logger.error("[Points] Failed to load points for %s: %s", lineId, e)
        return _fail(500, t("points.load_failed", lang))
    return {"success": True, "totalPoints": total}


@router.post("/redeem")
async def redeem(
    request: Request,
    repo: Optional[RewardsRepository] = Depends(get_rewards_repository),
):
    lang = get_config().language
    try:
        body = await request.json()
    except ValueError:
        body = None
    line_id = body.get("lineId") if isinstance(body, dict) else None
    code = body.get("code") if isinstance(body, dict) else None
    if not line_id or not isinstance(line_id, str) or not code or not isinstance(code, str):
        return _fail(400, t("redeem.invalid_request", lang))

    if repo is None:
        logger.error("[Redeem] MONGODB_URI is not configured")
        return _fail(500, t("redeem.internal_error", lang))
    try:
        outcome = await repo.redeem(line_id, code)
    except Exception:
        logger.exception("[Redeem] Unexpected error for %s", line_id)
        return _fail(500, t("redeem.internal_error", lang))

    if outcome.status != RedeemStatus.OK:
        status_code, key = _OUTCOMES[outcome.status]
        return _fail(status_code, t(key, lang))

    return {
        "success": True,
        "message": t("redeem.success", lang, points=outcome.points),
        "points": outcome.points,
    }
