"""
detector.py — Decide whether a page is a legal agreement and prepare its text.

A weighted checklist over URL, title, body text, checkbox labels and link
texts. The extension sends these fields; nothing here touches a DOM.
"""

import re
from dataclasses import dataclass, asdict
from typing import Iterable

# Longest text handed to the analyzer
MAX_TEXT_CHARS = 50000

# How much of the body to inspect for consent wording
CONTENT_SAMPLE_CHARS = 5000

AGREEMENT_THRESHOLD = 0.3

URL_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'terms', r'tos', r'privacy', r'policy', r'legal',
    r'agreement', r'conditions', r'eula',
)]

TITLE_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'terms\s*(of\s*)?(service|use)',
    r'privacy\s*policy',
    r'user\s*agreement',
    r'license\s*agreement',
    r'cookie\s*policy',
    r'terms\s*and\s*conditions',
)]

CONTENT_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'by\s*(signing\s*up|registering|creating\s*an?\s*account|clicking|continuing)',
    r'you\s*agree\s*to',
    r'terms\s*of\s*(service|use)',
    r'privacy\s*policy',
    r'i\s*(accept|agree)',
)]

CONSENT_LABEL = re.compile(r'agree|accept|terms|privacy|policy', re.IGNORECASE)
AGREEMENT_LINK = re.compile(r'terms|privacy|policy|agreement', re.IGNORECASE)


@dataclass
class AgreementDetection:
    is_agreement: bool
    confidence:   float   # 0–1
    type:         str     # "tos" | "privacy" | "signup" | "cookie" | "unknown"
    title:        str
    url:          str

    def to_dict(self) -> dict:
        return asdict(self)


def _type_hint(value: str, terms_pattern: str) -> str:
    if re.search(r'privacy', value, re.IGNORECASE):
        return "privacy"
    if re.search(terms_pattern, value, re.IGNORECASE):
        return "tos"
    if re.search(r'cookie', value, re.IGNORECASE):
        return "cookie"
    return ""


def clean_text(text: str) -> str:
    """Collapse whitespace and cap the length before analysis."""
    return re.sub(r'\s+', ' ', text or "").strip()[:MAX_TEXT_CHARS]


def detect_agreement(
    url: str,
    title: str,
    text: str,
    checkbox_labels: Iterable[str] = (),
    link_texts: Iterable[str] = (),
) -> AgreementDetection:
    confidence = 0.0
    doc_type = "unknown"

    if any(p.search(url) for p in URL_PATTERNS):
        confidence += 0.3
        doc_type = _type_hint(url, r'terms|tos|conditions') or doc_type

    if any(p.search(title) for p in TITLE_PATTERNS):
        confidence += 0.3
        doc_type = _type_hint(title, r'terms|conditions') or doc_type

    sample = (text or "")[:CONTENT_SAMPLE_CHARS]
    if any(p.search(sample) for p in CONTENT_PATTERNS):
        confidence += 0.2
        if doc_type == "unknown":
            doc_type = "signup"

    if any(CONSENT_LABEL.search(label or "") for label in checkbox_labels):
        confidence += 0.3
        if doc_type == "unknown":
            doc_type = "signup"

    if sum(1 for t in link_texts if AGREEMENT_LINK.search(t or "")) >= 2:
        confidence += 0.1

    confidence = round(min(confidence, 1.0), 2)
    return AgreementDetection(
        is_agreement=confidence >= AGREEMENT_THRESHOLD,
        confidence=confidence,
        type=doc_type,
        title=title,
        url=url,
    )
