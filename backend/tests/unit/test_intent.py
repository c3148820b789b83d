"""Tests for document.intent (message routing)."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from document.intent import IntentType, classify_intent, classify_intent_with_llm, quick_classify


def _mock_completion(content: str):
    choice = MagicMock()
    choice.message.content = content
    completion = MagicMock()
    completion.choices = [choice]
    return completion


class TestQuickClassify:
    def test_file_means_create(self):
        result = quick_classify("hello", has_selection=True, has_file=True)
        assert result.intent is IntentType.DOCUMENT_CREATE
        assert result.reason == "File upload detected"

    def test_selection_means_edit(self):
        result = quick_classify("shorter please", has_selection=True)
        assert result.intent is IntentType.DOCUMENT_EDIT
        assert result.confidence == 0.95

    @pytest.mark.parametrize("message", [
        "Hello there",
        "how are you today",
        "thanks!",
        "what is the capital of France?",
    ])
    def test_chat_only_patterns(self, message):
        assert quick_classify(message).intent is IntentType.CHAT_ONLY

    @pytest.mark.parametrize("message", [
        "Summarize the French revolution",
        "create notes on cell biology",
        "also add a part on mitochondria",
        "make flashcards for chapter 3",
        "give me a new version with examples",
    ])
    def test_create_keywords(self, message):
        assert quick_classify(message).intent is IntentType.DOCUMENT_CREATE

    def test_ambiguous_returns_none(self):
        assert quick_classify("photosynthesis in plants") is None


class TestClassifyWithLlm:
    async def test_parses_json_response(self):
        payload = json.dumps({"intent": "DOCUMENT_CREATE", "confidence": 0.8, "reason": "wants notes"})
        with patch("document.intent._get_llm_client") as glc:
            client = AsyncMock()
            client.chat.completions.create = AsyncMock(return_value=_mock_completion(payload))
            glc.return_value = client
            result = await classify_intent_with_llm("photosynthesis in plants", has_document=True)

        assert result.intent is IntentType.DOCUMENT_CREATE
        assert result.confidence == 0.8
        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "User has existing document: Yes" in prompt

    async def test_bad_json_falls_back_to_chat(self):
        with patch("document.intent._get_llm_client") as glc:
            client = AsyncMock()
            client.chat.completions.create = AsyncMock(return_value=_mock_completion("not json"))
            glc.return_value = client
            result = await classify_intent_with_llm("hmm")

        assert result.intent is IntentType.CHAT_ONLY
        assert result.confidence == 0.5

    async def test_api_error_falls_back_to_chat(self):
        with patch("document.intent._get_llm_client") as glc:
            client = AsyncMock()
            client.chat.completions.create = AsyncMock(side_effect=RuntimeError("timeout"))
            glc.return_value = client
            result = await classify_intent_with_llm("hmm")

        assert result.intent is IntentType.CHAT_ONLY

    async def test_quick_path_skips_llm(self):
        with patch("document.intent.classify_intent_with_llm", new_callable=AsyncMock) as llm:
            result = await classify_intent("hello", has_selection=False, has_file=False)
        assert result.intent is IntentType.CHAT_ONLY
        llm.assert_not_awaited()
