"""
llm.py — Ollama-backed alternate risk analyzer.

Talks to a local Ollama instance via its REST API and asks for findings in
the same 8-category taxonomy as the keyword analyzer. Any failure (disabled,
unreachable, timeout, unparseable output) falls back to keyword matching.
"""

import json
import os
import re
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

import requests

from analyzer import (
    AnalysisResult, CATEGORY_DEFINITIONS, RiskCategory, RiskFinding,
    RiskSeverity, analyze, assemble, severity_rank,
)

logger = logging.getLogger(__name__)

# ── Config (overridable via environment variables) ────────────────────────────
OLLAMA_BASE_URL  = os.environ.get("OLLAMA_BASE_URL",  "http://ollama:11434")
OLLAMA_MODEL     = os.environ.get("OLLAMA_MODEL",     "llama3.2")
OLLAMA_TIMEOUT   = int(os.environ.get("OLLAMA_TIMEOUT", "120"))   # seconds
OLLAMA_ENABLED   = os.environ.get("OLLAMA_ENABLED", "true").lower() != "false"

# Longer documents keep their head and tail around a truncation marker
MAX_DOC_CHARS = 12000
TRUNCATION_MARKER = "\n\n[... middle section truncated ...]\n\n"


# ─────────────────────────────────────────────────────────────────────────────
# Data classes
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class LLMAnalysis:
    """Findings produced by the local LLM."""
    risks:            List[RiskFinding] = field(default_factory=list)
    summary:          str = ""
    overall_severity: RiskSeverity = RiskSeverity.MEDIUM
    model_used:       str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Ollama client
# ─────────────────────────────────────────────────────────────────────────────

def _ollama_available() -> bool:
    """Quick ping to see if Ollama is reachable."""
    try:
        r = requests.get(f"{OLLAMA_BASE_URL}/api/tags", timeout=4)
        return r.status_code == 200
    except requests.exceptions.RequestException:
        return False


def _ollama_generate(prompt: str, system: str = "") -> Optional[str]:
    """
    Call /api/generate in JSON mode and return the response text, or None on failure.
    """
    payload = {
        "model":  OLLAMA_MODEL,
        "prompt": prompt,
        "stream": False,
        "format": "json",
        "options": {
            "temperature": 0.3,
            "num_predict": 2000,
        },
    }
    if system:
        payload["system"] = system

    try:
        resp = requests.post(
            f"{OLLAMA_BASE_URL}/api/generate",
            json=payload,
            timeout=OLLAMA_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            logger.warning("Ollama returned a non-object body")
            return None
        return (data.get("response") or "").strip() or None
    except requests.exceptions.Timeout:
        logger.warning("Ollama timed out after %ds", OLLAMA_TIMEOUT)
        return None
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning("Ollama error: %s", e)
        return None


def _parse_json_response(text: str) -> Optional[dict]:
    """Extract JSON from model output — handles markdown fences and stray text."""
    if not text:
        return None
    text = re.sub(r"```(?:json)?", "", text).strip()
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(match.group())
    except json.JSONDecodeError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Prompts
# ─────────────────────────────────────────────────────────────────────────────

def _taxonomy_lines() -> str:
    return "\n".join(
        f"- {cat.value}: {d.description} ({d.default_severity.value})"
        for cat, d in CATEGORY_DEFINITIONS.items()
    )

SYSTEM_PROMPT = f"""You are a legal document analyst specializing in consumer protection. \
Identify clauses in Terms of Service, Privacy Policies and sign-up agreements that put consumers at risk.

Respond ONLY with a JSON object in this exact format:
{{
  "risks": [
    {{
      "category": "one of the categories below",
      "severity": "low|medium|high|critical",
      "title": "Brief title",
      "summary": "Plain-language explanation of the risk in 1-2 sentences",
      "originalText": "The exact text from the agreement that contains this risk"
    }}
  ],
  "summary": "A brief overall summary of the agreement's key concerns in 2-3 sentences",
  "overallSeverity": "low|medium|high|critical"
}}

Risk categories and their typical severity:
{_taxonomy_lines()}

Use plain, non-legal language. Do not flag standard, reasonable clauses as high risk. \
Arbitration clauses and class action waivers are always critical."""


def _truncate(text: str) -> str:
    if len(text) <= MAX_DOC_CHARS:
        return text
    half = MAX_DOC_CHARS // 2
    return text[:half] + TRUNCATION_MARKER + text[-half:]


def _prompt_analysis(text: str) -> str:
    return f"""Analyze the following legal agreement and identify potential risks for consumers:

---
{_truncate(text)}
---

Identify all significant risks and answer in the required JSON format."""


# ─────────────────────────────────────────────────────────────────────────────
# Response validation
# ─────────────────────────────────────────────────────────────────────────────

def _category(value) -> RiskCategory:
    try:
        return RiskCategory(value)
    except ValueError:
        return RiskCategory.LIABILITY_WAIVER

def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""

def _severity(value) -> RiskSeverity:
    try:
        return RiskSeverity(value)
    except ValueError:
        return RiskSeverity.MEDIUM


def parse_findings(data: dict) -> List[RiskFinding]:
    """
    Turn the model's risk list into findings.

    Keeps the first finding per category and sorts critical first, so the
    scorer sees the same shape the keyword matcher produces.
    """
    items = data.get("risks")
    if not isinstance(items, list):
        return []

    findings, seen = [], set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        category = _category(item.get("category"))
        if category in seen:
            continue
        seen.add(category)
        definition = CATEGORY_DEFINITIONS[category]
        findings.append(RiskFinding(
            id=f"llm-risk-{category.value}-{i}",
            category=category,
            severity=_severity(item.get("severity")),
            title=_text(item.get("title")) or definition.label,
            summary=_text(item.get("summary")) or definition.description,
            original_text=_text(item.get("originalText")),
        ))
    return sorted(findings, key=lambda r: severity_rank(r.severity), reverse=True)


# ─────────────────────────────────────────────────────────────────────────────
# Main public functions
# ─────────────────────────────────────────────────────────────────────────────

def analyze_with_llm(text: str) -> Optional[LLMAnalysis]:
    """
    Run the document through the local Ollama LLM.

    Returns None if Ollama is disabled, unreachable, or answers with
    something that is not the expected JSON.
    """
    if not OLLAMA_ENABLED:
        logger.info("Ollama disabled via OLLAMA_ENABLED=false")
        return None

    if not _ollama_available():
        logger.info("Ollama not reachable at %s", OLLAMA_BASE_URL)
        return None

    data = _parse_json_response(_ollama_generate(_prompt_analysis(text), SYSTEM_PROMPT))
    if data is None:
        logger.warning("Ollama returned no parseable analysis")
        return None

    return LLMAnalysis(
        risks=parse_findings(data),
        summary=_text(data.get("summary")),
        overall_severity=_severity(data.get("overallSeverity")),
        model_used=OLLAMA_MODEL,
    )


def analyze_with_fallback(text: str, industry: str = "default") -> Tuple[AnalysisResult, str]:
    """
    Prefer the LLM's findings, fall back to keyword matching.

    Returns (result, engine) where engine is "llm" or "keyword". Scoring,
    baseline comparison and red-flag escalation run the same way for both.
    """
    llm_result = analyze_with_llm(text)
    if llm_result is None:
        logger.info("Using keyword analysis")
        return analyze(text, industry), "keyword"

    result = assemble(text, llm_result.risks, industry)
    if llm_result.summary and llm_result.risks:
        result.summary = llm_result.summary
    return result, "llm"


# ─────────────────────────────────────────────────────────────────────────────
# Status helper  (used by the health endpoint)
# ─────────────────────────────────────────────────────────────────────────────

def ollama_status() -> dict:
    """Return Ollama connectivity info."""
    if not OLLAMA_ENABLED:
        return {"available": False, "reason": "Disabled via OLLAMA_ENABLED=false", "model": OLLAMA_MODEL}

    try:
        r = requests.get(f"{OLLAMA_BASE_URL}/api/tags", timeout=4)
        if r.status_code != 200:
            return {"available": False, "reason": f"HTTP {r.status_code}", "model": OLLAMA_MODEL}

        body = r.json()
        models = body.get("models") if isinstance(body, dict) else None
        if not isinstance(models, list):
            models = []
        model_names = [str(m.get("name") or "") for m in models if isinstance(m, dict)]
        return {
            "available":    True,
            "model":        OLLAMA_MODEL,
            "model_loaded": any(OLLAMA_MODEL in n for n in model_names),
            "all_models":   model_names,
            "base_url":     OLLAMA_BASE_URL,
        }
    except (requests.exceptions.RequestException, ValueError) as e:
        return {"available": False, "reason": str(e), "model": OLLAMA_MODEL}
