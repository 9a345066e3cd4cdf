"""Rule-based product advisor that needs no external service.

It reads every user turn, fills in a small profile (skin type, budget,
concerns) and either asks the next clarifying question or, once the profile is
complete, answers with a recommendation.
"""

import re
from typing import AsyncGenerator, Optional

from pydantic import BaseModel

from .base import LLMProvider

SKIN_TYPE_QUESTION = "ใช้ผิวแบบไหนคะ? (แห้ง, มัน, ผสม, หรือปกติ)"
BUDGET_QUESTION = "มีงบประมาณเท่าไหร่คะ?"
CONCERN_QUESTION = "มีปัญหาผิวเรื่องไหนหรือไม่? (สิว, ริ้ว รวย, ฝ้า, เซ็บ)"

# Checked in order; the first hit wins.
_SKIN_TYPES = [
    (("แห้ง",), "dry"),
    (("มัน",), "oily"),
    (("ผสม",), "combination"),
    (("ปกติ", "ปกะติ"), "normal"),
]
_CONCERNS = ["สิว", "ริ้ว", "รวย", "ฝ้า", "เซ็บ", "เหี่ยว"]
_BUDGET = re.compile(r"(\d+)\s*(บาท|บ|k|พัน)?")


class SkinProfile(BaseModel):
    skin_type: Optional[str] = None
    budget: Optional[str] = None
    concerns: list[str] = []

    def merge(self, other: "SkinProfile") -> "SkinProfile":
        return SkinProfile(
            skin_type=other.skin_type or self.skin_type,
            budget=other.budget or self.budget,
            concerns=other.concerns or self.concerns,
        )


def extract_profile(message: str) -> SkinProfile:
    """Pull whatever preferences a single message mentions."""
    lowered = message.lower()
    profile = SkinProfile()

    for needles, skin_type in _SKIN_TYPES:
        if any(n in lowered for n in needles):
            profile.skin_type = skin_type
            break

    match = _BUDGET.search(message)
    if match:
        profile.budget = match.group(0).strip()
    elif "ไม่เกิน" in lowered:
        profile.budget = "budget_constrained"

    profile.concerns = [c for c in _CONCERNS if c in lowered]
    return profile


def next_question(profile: SkinProfile) -> Optional[str]:
    if not profile.skin_type:
        return SKIN_TYPE_QUESTION
    if not profile.budget:
        return BUDGET_QUESTION
    if not profile.concerns:
        return CONCERN_QUESTION
    return None


def recommend(profile: SkinProfile) -> str:
    lines = ["ตามข้อมูลที่คุณให้มา ฉันแนะนำ:", ""]

    if profile.skin_type == "oily":
        lines += [
            "✓ สำหรับผิวมัน แนะนำเลือกครีมที่:",
            "  - ไม่ทำให้ผิวมากขึ้น",
            "  - มี oil control formula",
            "  - ผลิต matt finish",
            "",
        ]
    elif profile.skin_type == "dry":
        lines += [
            "✓ สำหรับผิวแห้ง แนะนำเลือกครีมที่:",
            "  - มีส่วนประกอบเลี้ยงให้",
            "  - ช่วยลดน้ำหาย",
            "  - มี moisturizing formula",
            "",
        ]

    if profile.budget:
        lines.append(f"✓ ตามงบประมาณ {profile.budget} คุณมีตัวเลือกจำนวนหนึ่ง")

    if profile.concerns:
        lines += ["", f"✓ เรื่อง {', '.join(profile.concerns)} แนะนำเลือก ingredient เช่น:"]
        if "สิว" in profile.concerns:
            lines.append("  - Salicylic Acid สำหรับสิว")
        if "ริ้ว" in profile.concerns or "รวย" in profile.concerns:
            lines.append("  - Retinol หรือ Peptides ต้านริ้วรวย")
        if "ฝ้า" in profile.concerns:
            lines.append("  - Niacinamide หรือ Vitamin C ช่วยลดฝ้า")

    lines += ["", "", "ต้องการลองสินค้าใดหรือมีคำถามเพิ่มเติมหรือไม่คะ?"]
    return "\n".join(lines)


def build_profile(messages: list[dict]) -> SkinProfile:
    profile = SkinProfile()
    for msg in messages:
        if msg["role"] == "user":
            profile = profile.merge(extract_profile(msg["content"]))
    return profile


def guided_reply(messages: list[dict]) -> str:
    profile = build_profile(messages)
    return next_question(profile) or recommend(profile)


class GuidedProvider(LLMProvider):
    name = "guided"

    async def complete(
        self, messages: list[dict], model: str, **kwargs
    ) -> str:
        return guided_reply(messages)

    async def stream(
        self, messages: list[dict], model: str, **kwargs
    ) -> AsyncGenerator[str, None]:
        yield guided_reply(messages)
