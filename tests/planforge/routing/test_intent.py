"""Tests for intent classification."""

import pytest
from unittest.mock import AsyncMock

from planforge.errors import ProviderExhausted
from planforge.llm.failover import CompletionResult
from planforge.routing.intent import IntentClassifier, IntentType, classify_by_keywords, parse_classification


class TestKeywordClassification:

    def test_build_request(self):
        result = classify_by_keywords("Create a supervisor with two workers")
        assert result.intent_type == IntentType.BUILD
        assert result.confidence == 0.7
        assert result.entities["actions"] == ["create"]
        assert result.source == "keywords"

    def test_edit_request_extracts_node_types(self):
        result = classify_by_keywords("rename the agent")
        assert result.intent_type == IntentType.EDIT
        assert result.entities["nodeTypes"] == ["agent"]

    def test_export_request(self):
        assert classify_by_keywords("export as json").intent_type == IntentType.EXPORT

    def test_confidence_is_capped(self):
        result = classify_by_keywords("create build make new generate design")
        assert result.intent_type == IntentType.BUILD
        assert result.confidence == 0.9

    def test_no_keywords_is_unknown(self):
        result = classify_by_keywords("hello there")
        assert result.intent_type == IntentType.UNKNOWN
        assert result.confidence == 0.3
        assert result.raw_intent == "hello there"


class TestParseClassification:

    def test_extracts_embedded_json_and_clamps(self):
        text = 'Sure: {"type": "query", "confidence": 1.7, "entities": {"nodeTypes": ["agent"]}}'
        result = parse_classification(text, "what agents exist")
        assert result.intent_type == IntentType.QUERY
        assert result.confidence == 1.0
        assert result.entities == {"nodeTypes": ["agent"]}
        assert result.raw_intent == "what agents exist"
        assert result.source == "llm"

    def test_defaults_for_missing_fields(self):
        result = parse_classification('{"type": "TELEPORT"}', "m")
        assert result.intent_type == IntentType.UNKNOWN
        assert result.confidence == 0.8

    def test_no_json(self):
        assert parse_classification("BUILD", "m") is None


def _completion(text):
    return CompletionResult(content=[{"type": "text", "text": text}], model="m", tier="primary")


@pytest.mark.asyncio
async def test_classifier_prefers_model_answer():
    client = AsyncMock()
    client.generate.return_value = _completion('{"type": "CONFIGURE", "confidence": 0.95}')

    result = await IntentClassifier(client).classify("create something")

    assert result.intent_type == IntentType.CONFIGURE
    assert client.generate.await_args.args[0] == "builder"


@pytest.mark.asyncio
async def test_classifier_falls_back_on_provider_error():
    client = AsyncMock()
    client.generate.side_effect = ProviderExhausted("builder", ["primary"])

    result = await IntentClassifier(client).classify("create something")

    assert result.intent_type == IntentType.BUILD
    assert result.source == "keywords"


@pytest.mark.asyncio
async def test_classifier_falls_back_on_prose_reply():
    client = AsyncMock()
    client.generate.return_value = _completion("I think this is a build request.")

    result = await IntentClassifier(client).classify("export as json")

    assert result.intent_type == IntentType.EXPORT


@pytest.mark.asyncio
async def test_classifier_without_client_uses_keywords():
    result = await IntentClassifier().classify("delete the worker")
    assert result.intent_type == IntentType.EDIT
