import json

import pytest
import requests

import llm
from analyzer import CATEGORY_DEFINITIONS, RiskCategory, RiskSeverity

TEXT = "Any dispute resolution will occur privately. We are not liable for damages."


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload or {}
        self.status_code = status_code

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


@pytest.fixture
def ollama(monkeypatch):
    """Pretend Ollama is up and answers with whatever the test sets."""
    state = {"response": "", "prompts": []}

    def fake_get(url, timeout):
        return FakeResponse({"models": [{"name": "llama3.2:latest"}]})

    def fake_post(url, json, timeout):
        state["prompts"].append(json)
        return FakeResponse({"response": state["response"]})

    monkeypatch.setattr(llm, "OLLAMA_ENABLED", True)
    monkeypatch.setattr(llm.requests, "get", fake_get)
    monkeypatch.setattr(llm.requests, "post", fake_post)
    return state


def test_disabled_falls_back_to_keywords(monkeypatch):
    monkeypatch.setattr(llm, "OLLAMA_ENABLED", False)
    result, engine = llm.analyze_with_fallback(TEXT)
    assert engine == "keyword"
    assert result.score == 71


def test_unreachable_falls_back_to_keywords(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(llm, "OLLAMA_ENABLED", True)
    monkeypatch.setattr(llm.requests, "get", refuse)
    assert llm.analyze_with_llm(TEXT) is None
    assert llm.analyze_with_fallback(TEXT)[1] == "keyword"
    assert llm.ollama_status()["available"] is False


def test_unparseable_answer_falls_back(ollama):
    ollama["response"] = "Sorry, I cannot help with that."
    result, engine = llm.analyze_with_fallback(TEXT)
    assert engine == "keyword"
    assert len(result.risks) == 2


def test_llm_findings_run_through_the_scorer(ollama):
    ollama["response"] = "```json\n" + json.dumps({
        "risks": [
            {"category": "arbitration", "severity": "critical", "title": "Arbitration",
             "summary": "No court.", "originalText": "dispute resolution"},
            {"category": "arbitration", "severity": "low"},
            {"category": "mystery", "severity": "extreme"},
        ],
        "summary": "Two serious problems.",
        "overallSeverity": "critical",
    }) + "\n```"

    result, engine = llm.analyze_with_fallback(TEXT, industry="saas")
    assert engine == "llm"
    assert [(r.category, r.severity) for r in result.risks] == [
        (RiskCategory.ARBITRATION, RiskSeverity.CRITICAL),
        (RiskCategory.LIABILITY_WAIVER, RiskSeverity.MEDIUM),
    ]
    assert result.risks[1].title == "Liability Waiver"
    assert result.score == (4 + 2) * 8 + 15
    assert len(result.combination_warnings) == 1
    assert result.summary == "Two serious problems."
    assert ollama["prompts"][0]["format"] == "json"


def test_long_documents_keep_head_and_tail():
    text = "a" * 10000 + "b" * 10000
    out = llm._truncate(text)
    assert out.startswith("a" * 6000) and out.endswith("b" * 6000)
    assert llm.TRUNCATION_MARKER in out
    assert llm._truncate("short") == "short"


def test_status_reports_loaded_model(ollama, monkeypatch):
    monkeypatch.setattr(llm, "OLLAMA_MODEL", "llama3.2")
    status = llm.ollama_status()
    assert status["available"] and status["model_loaded"]


def test_null_response_falls_back(ollama):
    ollama["response"] = None
    assert llm._ollama_generate("prompt") is None
    result, engine = llm.analyze_with_fallback(TEXT)
    assert engine == "keyword"
    assert result.score == 71


@pytest.mark.parametrize("body", [["not", "an", "object"], "plain text", 42])
def test_non_object_body_falls_back(ollama, monkeypatch, body):
    monkeypatch.setattr(llm.requests, "post", lambda url, json, timeout: FakeResponse(body))
    monkeypatch.setattr(llm.requests, "get", lambda url, timeout: FakeResponse(body))
    assert llm.analyze_with_fallback(TEXT)[1] == "keyword"
    status = llm.ollama_status()
    assert status["available"] and status["all_models"] == []


def test_badly_typed_fields_are_ignored(ollama):
    ollama["response"] = json.dumps({
        "risks": [{"category": "arbitration", "severity": "high", "title": 7, "summary": None}],
        "summary": ["not", "a", "string"],
    })
    result, engine = llm.analyze_with_fallback(TEXT)
    assert engine == "llm"
    assert result.risks[0].title == CATEGORY_DEFINITIONS[RiskCategory.ARBITRATION].label
    assert result.summary.startswith("Found 1 potential risk")

    ollama["response"] = json.dumps({"risks": "none", "summary": "Fine."})
    assert llm.analyze_with_fallback(TEXT)[0].risks == []
