"""Reward codes and point balances stored in MongoDB.

Collections: ``codes`` (one document per printed code), ``points`` (history
entries) and ``user`` (one document per LINE user with ``totalPoints``).
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from ..config import get_config

logger = logging.getLogger(__name__)


class RedeemStatus(str, enum.Enum):
    OK = "ok"
    UNKNOWN_CODE = "unknown_code"
    ALREADY_USED = "already_used"
    BAD_POINTS = "bad_points"


class RedeemOutcome(BaseModel):
    status: RedeemStatus
    points: int = 0


def normalize_code(code: str) -> str:
    return code.strip().upper()


def valid_points(value: Any) -> Optional[int]:
    """Return the points as int if they are a positive whole number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    if value <= 0:
        return None
    return int(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RewardsRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self.db = db
        self.codes = db["codes"]
        self.points = db["points"]
        self.users = db["user"]

    async def get_total_points(self, line_id: str) -> int:
        user = await self.users.find_one({"lineId": line_id})
        if not user:
            return 0
        return user.get("totalPoints", 0)

    async def redeem(self, line_id: str, code: str) -> RedeemOutcome:
        clean = normalize_code(code)

        existing = await self.codes.find_one({"code": clean})
        if existing is None:
            return RedeemOutcome(status=RedeemStatus.UNKNOWN_CODE)
        if existing.get("usedBy"):
            return RedeemOutcome(status=RedeemStatus.ALREADY_USED)
        points = valid_points(existing.get("points"))
        if points is None:
            logger.error("Code %s has malformed points: %r", clean, existing.get("points"))
            return RedeemOutcome(status=RedeemStatus.BAD_POINTS)

        # Only one concurrent request can flip usedBy from null.
        claimed = await self.codes.find_one_and_update(
            {"code": clean, "usedBy": None},
            {"$set": {"usedBy": line_id, "usedAt": _now()}},
        )
        if claimed is None:
            logger.info("Code %s was claimed by a concurrent request", clean)
            return RedeemOutcome(status=RedeemStatus.ALREADY_USED)

        history_id = None
        try:
            inserted = await self.points.insert_one({
                "lineId": line_id,
                "points": points,
                "type": "earn",
                "description": "Claim Code",
                "code": clean,
                "date": _now(),
            })
            history_id = inserted.inserted_id
            await self.users.update_one(
                {"lineId": line_id},
                {
                    "$setOnInsert": {"name": "", "picture": "", "createdAt": _now()},
                    "$inc": {"totalPoints": points},
                },
                upsert=True,
            )
        except Exception:
            logger.exception("Crediting code %s to %s failed, releasing the claim", clean, line_id)
            await self._release(clean, line_id, history_id)
            raise

        logger.info("Redeemed %s for %s: +%d points", clean, line_id, points)
        return RedeemOutcome(status=RedeemStatus.OK, points=points)

    async def _release(self, code: str, line_id: str, history_id: Any) -> None:
        if history_id is not None:
            await self.points.delete_one({"_id": history_id})
        await self.codes.update_one(
            {"code": code, "usedBy": line_id},
            {"$set": {"usedBy": None}, "$unset": {"usedAt": ""}},
        )


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

_client: Optional[AsyncMongoClient] = None


def get_rewards_repository() -> Optional[RewardsRepository]:
    """Repository over the shared client, or None when MONGODB_URI is unset."""
    global _client
    db_cfg = get_config().database
    if not db_cfg.mongodb_uri:
        return None
    if _client is None:
        _client = AsyncMongoClient(db_cfg.mongodb_uri)
    return RewardsRepository(_client[db_cfg.mongodb_database])


async def close_rewards_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
