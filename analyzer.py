"""
Rule-based agreement risk analyzer
No AI / ML — pure Python: substring search, regex, fixed lookup tables.
Covers 8 consumer-risk categories, dangerous category combinations,
red-flag phrases and a static per-industry baseline.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────

class RiskCategory(str, Enum):
    DATA_SHARING        = "data_sharing"
    AUTO_RENEWAL        = "auto_renewal"
    THIRD_PARTY_ACCESS  = "third_party_access"
    LIABILITY_WAIVER    = "liability_waiver"
    ARBITRATION         = "arbitration"
    DATA_RETENTION      = "data_retention"
    ACCOUNT_TERMINATION = "account_termination"
    JURISDICTION        = "jurisdiction"


class RiskSeverity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"


SEVERITY_RANK = {
    RiskSeverity.LOW:      1,
    RiskSeverity.MEDIUM:   2,
    RiskSeverity.HIGH:     3,
    RiskSeverity.CRITICAL: 4,
}


# ─────────────────────────────────────────────────────────────────────────────
# Data classes
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CategoryDefinition:
    label:            str
    description:      str
    default_severity: RiskSeverity
    icon:             str
    keywords:         Tuple[str, ...]   # matched in order, case-insensitively


@dataclass(frozen=True)
class TextLocation:
    start_index: int
    end_index:   int


@dataclass(frozen=True)
class RiskFinding:
    id:            str
    category:      RiskCategory
    severity:      RiskSeverity
    title:         str
    summary:       str
    original_text: str                       # trimmed context window
    location:      Optional[TextLocation] = None

    def to_dict(self) -> dict:
        return {
            "id":            self.id,
            "category":      self.category.value,
            "severity":      self.severity.value,
            "title":         self.title,
            "summary":       self.summary,
            "original_text": self.original_text,
            "location": (
                {"start_index": self.location.start_index,
                 "end_index":   self.location.end_index}
                if self.location else None
            ),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RiskFinding":
        loc = d.get("location")
        return cls(
            id=d["id"],
            category=RiskCategory(d["category"]),
            severity=RiskSeverity(d["severity"]),
            title=d["title"],
            summary=d["summary"],
            original_text=d["original_text"],
            location=TextLocation(loc["start_index"], loc["end_index"]) if loc else None,
        )


@dataclass(frozen=True)
class DangerousCombination:
    categories: FrozenSet[RiskCategory]
    boost:      int
    warning:    str


@dataclass
class BaselineComparison:
    comparison: str     # "better" | "average" | "worse"
    percentile: int     # 0–100
    message:    str


@dataclass
class AnalysisResult:
    score:                int
    comparison:           BaselineComparison
    overall_severity:     RiskSeverity
    summary:              str
    risks:                List[RiskFinding] = field(default_factory=list)
    red_flags:            List[str]         = field(default_factory=list)
    combination_warnings: List[str]         = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize to a plain dict (for JSON / cache storage)."""
        return {
            "risks": [r.to_dict() for r in self.risks],
            "score": self.score,
            "comparison": {
                "comparison": self.comparison.comparison,
                "percentile": self.comparison.percentile,
                "message":    self.comparison.message,
            },
            "red_flags":            list(self.red_flags),
            "combination_warnings": list(self.combination_warnings),
            "overall_severity":     self.overall_severity.value,
            "summary":              self.summary,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AnalysisResult":
        return cls(
            score=d["score"],
            comparison=BaselineComparison(**d["comparison"]),
            overall_severity=RiskSeverity(d["overall_severity"]),
            summary=d["summary"],
            risks=[RiskFinding.from_dict(r) for r in d["risks"]],
            red_flags=list(d["red_flags"]),
            combination_warnings=list(d["combination_warnings"]),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Risk taxonomy
# ─────────────────────────────────────────────────────────────────────────────

CATEGORY_DEFINITIONS: Dict[RiskCategory, CategoryDefinition] = {
    RiskCategory.DATA_SHARING: CategoryDefinition(
        "Data Sharing", "Your data may be shared with third parties",
        RiskSeverity.HIGH, "📤",
        ("share with third parties", "share your information", "disclose to partners",
         "sell your data", "transfer your information", "share with affiliates",
         "provide to advertisers")),
    RiskCategory.AUTO_RENEWAL: CategoryDefinition(
        "Auto-Renewal", "Subscription automatically renews",
        RiskSeverity.MEDIUM, "🔄",
        ("automatically renew", "auto-renewal", "recurring billing",
         "subscription will renew", "cancel before", "billing cycle",
         "charged automatically")),
    RiskCategory.THIRD_PARTY_ACCESS: CategoryDefinition(
        "Third-Party Access", "External parties can access your information",
        RiskSeverity.HIGH, "👥",
        ("service providers", "third-party services", "contractors",
         "business partners", "access your information", "share with vendors")),
    RiskCategory.LIABILITY_WAIVER: CategoryDefinition(
        "Liability Waiver", "Company limits their responsibility",
        RiskSeverity.HIGH, "⚠️",
        ("limitation of liability", "not responsible for", "not liable for",
         "no warranty", "as is", "disclaim all warranties", "use at your own risk")),
    RiskCategory.ARBITRATION: CategoryDefinition(
        "Arbitration Clause", "You may waive your right to sue in court",
        RiskSeverity.CRITICAL, "⚖️",
        ("binding arbitration", "waive right to jury", "class action waiver",
         "arbitration agreement", "dispute resolution",
         "waive your right to participate in class action")),
    RiskCategory.DATA_RETENTION: CategoryDefinition(
        "Data Retention", "Your data may be kept indefinitely",
        RiskSeverity.MEDIUM, "💾",
        ("retain your data", "keep your information", "store indefinitely",
         "retain after termination", "data retention period", "preserve your data")),
    RiskCategory.ACCOUNT_TERMINATION: CategoryDefinition(
        "Account Termination", "Account can be terminated without notice",
        RiskSeverity.MEDIUM, "🚫",
        ("terminate at any time", "suspend your account", "without notice",
         "sole discretion", "terminate without cause", "revoke access")),
    RiskCategory.JURISDICTION: CategoryDefinition(
        "Jurisdiction", "Legal disputes governed by specific laws",
        RiskSeverity.LOW, "🌍",
        ("governed by the laws of", "exclusive jurisdiction", "venue shall be",
         "subject to the laws", "courts of")),
}

CATEGORY_SUMMARIES = {
    RiskCategory.DATA_SHARING:        "This service may share your personal information with third parties, partners, or advertisers.",
    RiskCategory.AUTO_RENEWAL:        "Your subscription will automatically renew and you will be charged unless you cancel before the renewal date.",
    RiskCategory.THIRD_PARTY_ACCESS:  "External companies and service providers may have access to your data and account information.",
    RiskCategory.LIABILITY_WAIVER:    "The company limits their responsibility if something goes wrong. You may have limited options for recourse.",
    RiskCategory.ARBITRATION:         "You may be giving up your right to sue in court or join a class action lawsuit. Disputes would be handled through private arbitration.",
    RiskCategory.DATA_RETENTION:      "Your data may be kept for an extended period, even after you close your account.",
    RiskCategory.ACCOUNT_TERMINATION: "The company can suspend or terminate your account at their discretion, potentially without warning.",
    RiskCategory.JURISDICTION:        "Legal matters will be handled according to specific laws and courts, which may not be in your location.",
}

DANGEROUS_COMBINATIONS: Tuple[DangerousCombination, ...] = (
    DangerousCombination(
        frozenset({RiskCategory.ARBITRATION, RiskCategory.LIABILITY_WAIVER}), 1,
        "You give up your right to sue while the company limits its own liability, "
        "leaving you with very little recourse if something goes wrong."),
    DangerousCombination(
        frozenset({RiskCategory.DATA_SHARING, RiskCategory.THIRD_PARTY_ACCESS,
                   RiskCategory.DATA_RETENTION}), 1,
        "Your data is shared with outside parties and kept for a long time, "
        "which widens your exposure to leaks and misuse."),
    DangerousCombination(
        frozenset({RiskCategory.AUTO_RENEWAL, RiskCategory.ACCOUNT_TERMINATION}), 1,
        "You can keep being charged automatically while the company can close "
        "your account whenever it chooses."),
)

NO_RISKS_SUMMARY = "No significant risks detected in this agreement."

CONTEXT_CHARS      = 100
POINTS_PER_RANK    = 8
POINTS_PER_BOOST   = 15
BASELINE_THRESHOLD = 15

URGENCY_PATTERN = re.compile(r'waive|forfeit|surrender|binding|mandatory|required', re.IGNORECASE)
BREADTH_PATTERN = re.compile(r'sell|monetize|indefinitely|without notice|any reason', re.IGNORECASE)
URGENT_CATEGORIES = frozenset({RiskCategory.ARBITRATION, RiskCategory.LIABILITY_WAIVER})


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _fold(text: str) -> str:
    """Lower-case text without changing its length, so offsets map back 1:1."""
    out = []
    for ch in text:
        low = ch.lower()
        out.append(low if len(low) == 1 else ch)
    return "".join(out)

def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"

def severity_rank(severity: RiskSeverity) -> int:
    return SEVERITY_RANK[severity]


# ─────────────────────────────────────────────────────────────────────────────
# Keyword matcher
# ─────────────────────────────────────────────────────────────────────────────

def determine_severity(category: RiskCategory, context: str) -> RiskSeverity:
    """Per-finding severity from the category default and its context window."""
    default = CATEGORY_DEFINITIONS[category].default_severity
    if category in URGENT_CATEGORIES and URGENCY_PATTERN.search(context):
        return RiskSeverity.CRITICAL
    if BREADTH_PATTERN.search(context) and default is not RiskSeverity.CRITICAL:
        return RiskSeverity.HIGH
    return default


def find_risks(text: str) -> List[RiskFinding]:
    """
    Scan text for the first matching keyword of each category.

    Returns at most one finding per category, sorted critical first.
    Ties keep the taxonomy order.
    """
    folded = _fold(text)
    risks = []
    for category, definition in CATEGORY_DEFINITIONS.items():
        for keyword in definition.keywords:
            index = folded.find(keyword.lower())
            if index == -1:
                continue
            end = index + len(keyword)
            context = text[max(0, index - CONTEXT_CHARS):min(len(text), end + CONTEXT_CHARS)]
            risks.append(RiskFinding(
                id=f"risk-{category.value}-{index}",
                category=category,
                severity=determine_severity(category, context),
                title=definition.label,
                summary=CATEGORY_SUMMARIES[category],
                original_text=context.strip(),
                location=TextLocation(index, end),
            ))
            break   # one finding per category
    return sorted(risks, key=lambda r: severity_rank(r.severity), reverse=True)


# ─────────────────────────────────────────────────────────────────────────────
# Severity aggregation & scoring
# ─────────────────────────────────────────────────────────────────────────────

def overall_severity(risks: List[RiskFinding]) -> RiskSeverity:
    if not risks:
        return RiskSeverity.LOW
    max_rank = max(severity_rank(r.severity) for r in risks)
    if max_rank >= 4:
        return RiskSeverity.CRITICAL
    if max_rank >= 3:
        return RiskSeverity.HIGH
    if max_rank >= 2:
        return RiskSeverity.MEDIUM
    return RiskSeverity.LOW


def triggered_combinations(risks: List[RiskFinding]) -> List[DangerousCombination]:
    """Rules whose whole category set is present, each counted once."""
    present = {r.category for r in risks}
    return [c for c in DANGEROUS_COMBINATIONS if c.categories <= present]


def compute_score(risks: List[RiskFinding]) -> int:
    if not risks:
        return 0
    score = sum(severity_rank(r.severity) * POINTS_PER_RANK for r in risks)
    score += sum(c.boost * POINTS_PER_BOOST for c in triggered_combinations(risks))
    return max(0, min(100, score))


# ─────────────────────────────────────────────────────────────────────────────
# Baseline comparison  (static table, not a statistical model)
# ─────────────────────────────────────────────────────────────────────────────

INDUSTRY_BASELINES = {
    "social_media": 72,
    "ecommerce":    58,
    "saas":         54,
    "finance":      68,
    "healthcare":   62,
    "default":      55,
}

def typical_comparison() -> BaselineComparison:
    return BaselineComparison("average", 50,
        "This agreement has typical risk levels for similar services.")

def compare_to_baseline(score: int, industry: str = "default") -> BaselineComparison:
    average = INDUSTRY_BASELINES.get(industry, INDUSTRY_BASELINES["default"])
    difference = score - average

    if difference < -BASELINE_THRESHOLD:
        percentile = max(5, 50 - abs(difference))
        return BaselineComparison("better", percentile,
            f"This agreement is better than {100 - percentile}% of similar services.")
    if difference > BASELINE_THRESHOLD:
        percentile = min(95, 50 + difference)
        return BaselineComparison("worse", percentile,
            f"This agreement is riskier than {percentile}% of similar services.")
    return typical_comparison()


# ─────────────────────────────────────────────────────────────────────────────
# Red flag scanner
# ─────────────────────────────────────────────────────────────────────────────

RED_FLAG_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'waive.{0,80}?right to.{0,80}?jury',
    r'class action waiver',
    r'binding arbitration',
    r'sell.{0,60}?(?:data|information)',
    r'perpetual.{0,60}?irrevocable.{0,60}?licen[cs]e',
    r'without.{0,30}?notice',
    r'sole.{0,20}?discretion',
    r'indemnify.{0,80}?hold harmless',
    r'waive any claims',
    r'no refunds?',
)]

def scan_red_flags(text: str) -> List[str]:
    """First match of each red-flag pattern, verbatim, in pattern order."""
    flags = []
    for pattern in RED_FLAG_PATTERNS:
        m = pattern.search(text)
        if m:
            flags.append(m.group(0))
    return flags


# ─────────────────────────────────────────────────────────────────────────────
# Summary
# ─────────────────────────────────────────────────────────────────────────────

def build_summary(risks: List[RiskFinding]) -> str:
    if not risks:
        return NO_RISKS_SUMMARY

    critical = sum(1 for r in risks if r.severity is RiskSeverity.CRITICAL)
    high = sum(1 for r in risks if r.severity is RiskSeverity.HIGH)

    summary = f"Found {_plural(len(risks), 'potential risk')}. "
    if critical:
        verb = "requires" if critical == 1 else "require"
        summary += f"{_plural(critical, 'critical issue')} {verb} attention. "
    if high:
        summary += f"{_plural(high, 'high-priority concern')}. "
    return summary.strip()


def escalate(base: RiskSeverity, red_flag_count: int) -> RiskSeverity:
    """Red-flag escalation, always judged against the keyword-derived base."""
    if red_flag_count >= 3 and base is not RiskSeverity.CRITICAL:
        return RiskSeverity.CRITICAL
    if red_flag_count >= 2 and severity_rank(base) < 3:
        return RiskSeverity.HIGH
    return base


# ─────────────────────────────────────────────────────────────────────────────
# Main entry points
# ─────────────────────────────────────────────────────────────────────────────

def assemble(text: str, risks: List[RiskFinding], industry: str = "default") -> AnalysisResult:
    """Score, compare and escalate an already-produced list of findings."""
    score = compute_score(risks)
    red_flags = scan_red_flags(text)
    return AnalysisResult(
        score=score,
        comparison=compare_to_baseline(score, industry) if risks else typical_comparison(),
        overall_severity=escalate(overall_severity(risks), len(red_flags)),
        summary=build_summary(risks),
        risks=list(risks),
        red_flags=red_flags,
        combination_warnings=[c.warning for c in triggered_combinations(risks)],
    )


def analyze(text: str, industry: str = "default") -> AnalysisResult:
    return assemble(text, find_risks(text), industry)
