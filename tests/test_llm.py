"""Tests for the guided advisor and provider selection."""
from types import SimpleNamespace

import pytest

from liffmember.llm.base import split_system, last_user_content
from liffmember.llm.dialogflow_provider import DialogflowProvider, session_id_for
from liffmember.llm.gemini_provider import GeminiProvider
from liffmember.llm.guided_provider import (
    BUDGET_QUESTION,
    CONCERN_QUESTION,
    SKIN_TYPE_QUESTION,
    GuidedProvider,
    build_profile,
    extract_profile,
    guided_reply,
)
from liffmember.llm.openai_provider import OpenAIProvider
from liffmember.llm.registry import get_provider, model_for, reset_providers


def user(text):
    return {"role": "user", "content": text}


class TestGuidedFlow:
    """Tests for the rule-based clarifying-question flow."""

    def test_extract_skin_type(self):
        """Test skin type detection, first match wins."""
        assert extract_profile("ผิวแห้งมาก").skin_type == "dry"
        assert extract_profile("ผิวมัน").skin_type == "oily"
        assert extract_profile("ผิวผสม").skin_type == "combination"
        assert extract_profile("ผิวปกติ").skin_type == "normal"
        assert extract_profile("hello").skin_type is None

    def test_extract_budget(self):
        """Test budget amounts with and without a unit."""
        assert extract_profile("งบ 500 บาท").budget == "500 บาท"
        assert extract_profile("ประมาณ 300").budget == "300"
        assert extract_profile("ไม่เกินงบ").budget == "budget_constrained"

    def test_extract_concerns(self):
        """Test that every mentioned concern is collected."""
        assert extract_profile("มีสิวและฝ้า").concerns == ["สิว", "ฝ้า"]

    def test_questions_in_order(self):
        """Test skin type, then budget, then concern questions."""
        assert guided_reply([user("แนะนำครีมหน่อย")]) == SKIN_TYPE_QUESTION
        assert guided_reply([user("ผิวมัน")]) == BUDGET_QUESTION
        assert guided_reply([user("ผิวมัน"), user("500 บาท")]) == CONCERN_QUESTION

    def test_recommendation_once_complete(self):
        """Test that a full profile produces a recommendation."""
        reply = guided_reply([user("ผิวมัน"), user("500 บาท"), user("มีสิว")])
        assert reply.startswith("ตามข้อมูลที่คุณให้มา ฉันแนะนำ:")
        assert "oil control" in reply
        assert "500 บาท" in reply
        assert "Salicylic Acid" in reply

    def test_later_messages_override(self):
        """Test that newer answers replace older ones, assistant turns ignored."""
        profile = build_profile([
            user("ผิวแห้ง"),
            {"role": "assistant", "content": "ผิวมัน"},
            user("จริงๆ ผิวผสม"),
        ])
        assert profile.skin_type == "combination"

    async def test_provider_streams_one_reply(self):
        """Test the provider interface of the guided flow."""
        provider = GuidedProvider()
        chunks = [c async for c in provider.stream([user("สวัสดี")], "guided")]
        assert chunks == [SKIN_TYPE_QUESTION]
        assert await provider.complete([user("สวัสดี")], "guided") == SKIN_TYPE_QUESTION


class TestHelpers:
    """Tests for message helpers shared by providers."""

    def test_split_system(self):
        """Test that system prompts are separated from turns."""
        system, turns = split_system([
            {"role": "system", "content": "a"},
            user("hi"),
            {"role": "system", "content": "b"},
        ])
        assert system == "a\n\nb"
        assert turns == [user("hi")]

    def test_last_user_content(self):
        """Test the latest user turn lookup."""
        assert last_user_content([user("one"), {"role": "assistant", "content": "x"}, user("two")]) == "two"
        assert last_user_content([]) == ""

    def test_dialogflow_session_ids(self):
        """Test that usable keys pass through, others are hashed, and no key means a fresh session."""
        assert session_id_for("conv-1700000000000-abc") == "conv-1700000000000-abc"
        hashed = session_id_for("U1234:conv-1700000000000-abc")
        assert len(hashed) == 32
        assert hashed == session_id_for("U1234:conv-1700000000000-abc")
        assert session_id_for(None) != session_id_for(None)

    def test_gemini_role_mapping(self):
        """Test that assistant turns become 'model' and the system prompt is lifted out."""
        provider = GeminiProvider(api_key="fake-key")
        system, contents = provider._build_contents([
            {"role": "system", "content": "be brief"},
            user("hi"),
            {"role": "assistant", "content": "hello"},
        ])
        assert system == "be brief"
        assert [c.role for c in contents] == ["user", "model"]


class TestRegistry:
    """Tests for provider selection from config."""

    def test_unconfigured_returns_none(self, app_config):
        """Test that no credentials and no fallback means no provider."""
        assert get_provider() is None

    def test_guided_fallback(self, app_config):
        """Test that the guided flow stands in when enabled."""
        app_config.llm.guided_fallback = True
        assert isinstance(get_provider(), GuidedProvider)

    def test_gemini_with_key(self, app_config):
        """Test that a configured Gemini key selects Gemini."""
        app_config.llm.gemini_api_key = "fake-key"
        provider = get_provider()
        assert isinstance(provider, GeminiProvider)
        assert model_for(provider.name) == "gemini-2.5-flash"

    def test_openai_with_key(self, app_config):
        """Test OpenAI selection and its model setting."""
        app_config.llm.provider = "openai"
        app_config.llm.openai_api_key = "sk-fake"
        assert isinstance(get_provider(), OpenAIProvider)
        assert model_for("openai") == "gpt-3.5-turbo"

    def test_unknown_provider_falls_back(self, app_config):
        """Test that an unknown provider name uses the guided flow when allowed."""
        app_config.llm.provider = "nope"
        app_config.llm.guided_fallback = True
        assert isinstance(get_provider(), GuidedProvider)

    def test_instances_are_cached(self, app_config):
        """Test that providers are built once until reset."""
        app_config.llm.guided_fallback = True
        first = get_provider()
        assert get_provider() is first
        reset_providers()
        assert get_provider() is not first


class FakeSessionsClient:
    """Stands in for dialogflow SessionsAsyncClient."""

    def __init__(self):
        self.sessions: list[str] = []

    def session_path(self, project: str, session: str) -> str:
        return f"projects/{project}/agent/sessions/{session}"

    async def detect_intent(self, request):
        self.sessions.append(request["session"])
        return SimpleNamespace(query_result=SimpleNamespace(fulfillment_text="สวัสดีค่ะ"))


class TestDialogflowSessions:
    """Tests for how Dialogflow sessions are keyed."""

    async def test_same_opening_different_users(self):
        """Test that two users opening with the same words do not share a session."""
        client = FakeSessionsClient()
        provider = DialogflowProvider(project_id="shop", client=client)
        history = [user("สวัสดี")]

        await provider.complete(history, "dialogflow", session_id="U1:conv-a")
        await provider.complete(history, "dialogflow", session_id="U2:conv-b")

        assert client.sessions[0] != client.sessions[1]

    async def test_one_conversation_keeps_its_session(self):
        """Test that later turns of a conversation reuse its session."""
        client = FakeSessionsClient()
        provider = DialogflowProvider(project_id="shop", client=client)

        await provider.complete([user("สวัสดี")], "dialogflow", session_id="conv-a")
        reply = await provider.complete(
            [user("สวัสดี"), {"role": "assistant", "content": "hi"}, user("more")],
            "dialogflow",
            session_id="conv-a",
        )

        assert reply == "สวัสดีค่ะ"
        assert client.sessions == ["projects/shop/agent/sessions/conv-a"] * 2

    async def test_no_key_never_shares(self):
        """Test that requests without a key get separate sessions."""
        client = FakeSessionsClient()
        provider = DialogflowProvider(project_id="shop", client=client)

        for _ in range(2):
            await provider.complete([user("สวัสดี")], "dialogflow")

        assert client.sessions[0] != client.sessions[1]
