"""
interceptor.py — "Before you sign" checks for agreement buttons and checkboxes.

The extension reports the label of the element being clicked; this module
decides whether it is an agreement trigger and what the warning modal shows.
"""

import re
from typing import Optional

from analyzer import AnalysisResult, RiskSeverity

BUTTON_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'^i\s*(agree|accept|consent)$',
    r'^agree(\s+(&|and)\s+continue)?$',
    r'^accept(\s+(terms|all|&\s+continue))?$',
    r'^continue$',
    r'^sign\s*up$',
    r'^create\s*account$',
    r'^register$',
    r'^submit$',
    r'^get\s*started$',
)]

CHECKBOX_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'i\s*(have\s+read|agree|accept|consent)',
    r'terms\s*(of\s*)?(service|use)',
    r'privacy\s*policy',
    r'agree\s+to\s+the',
)]

HEADERS = {
    RiskSeverity.CRITICAL: ("critical", "🚨", "Wait! Critical Issues Found"),
    RiskSeverity.HIGH:     ("warning",  "⚠️", "Caution: Significant Risks"),
}
DEFAULT_HEADER = ("caution", "📋", "Review Before You Agree")

MAX_PROMPT_RISKS = 5


def is_agreement_trigger(label: str, kind: str = "button") -> bool:
    label = (label or "").strip()
    if kind == "checkbox":
        return any(p.search(label) for p in CHECKBOX_PATTERNS)
    return any(p.search(label) for p in BUTTON_PATTERNS)


def score_band(score: int) -> str:
    if score >= 70:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 30:
        return "medium"
    return "low"


def should_intercept(result: AnalysisResult) -> bool:
    # Clean pages let the click through untouched
    return bool(result.risks)


def build_prompt(result: AnalysisResult) -> dict:
    style, icon, title = HEADERS.get(result.overall_severity, DEFAULT_HEADER)
    return {
        "header_style":         style,
        "icon":                 icon,
        "title":                title,
        "score":                result.score,
        "score_band":           score_band(result.score),
        "comparison_message":   result.comparison.message,
        "combination_warnings": list(result.combination_warnings),
        "risks": [
            {"title": r.title, "severity": r.severity.value, "summary": r.summary}
            for r in result.risks[:MAX_PROMPT_RISKS]
        ],
        "more_count": max(0, len(result.risks) - MAX_PROMPT_RISKS),
        "proceed_label": "Proceed" if result.score < 30 else "Accept Anyway",
    }


def intercept(label: str, kind: str, result: AnalysisResult) -> dict:
    trigger = is_agreement_trigger(label, kind)
    prompt: Optional[dict] = None
    if trigger and should_intercept(result):
        prompt = build_prompt(result)
    return {"trigger": trigger, "intercept": prompt is not None, "prompt": prompt}
