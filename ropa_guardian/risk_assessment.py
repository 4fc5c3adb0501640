"""
Risk Assessment
===============

Risk scoring for processing activities recorded in the ROPA.

The advisory service is consulted first; whenever it is disabled, marked
unavailable, unreachable, or answers with something that cannot be used,
the deterministic rule-based scorer takes over.  Five independent factors
are added up:

====================  =======  ==================================================
Factor                Points   Rule
====================  =======  ==================================================
data sensitivity      1 or 3   3 if any category names a sensitive type, else 1
categories count      0 - 2    2 if >= 5 categories, 1 if >= 3
subjects count        0 - 2    2 if >= 4 subjects, 1 if >= 2
retention period      0 - 2    first integer read as years: 2 if > 5, 1 if > 1
recipients            0 - 2    2 if >= 5 recipients, 1 if >= 3
====================  =======  ==================================================

A total of 2 or less is LOW, 3 to 6 is MEDIUM and 7 or more is HIGH.
Assessment never raises: an unexpected failure yields a conservative
MEDIUM result with a score of 4.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ropa_guardian.advisory_client import PROVIDER_NAME, AdvisoryClient, AdvisoryServiceState
from ropa_guardian.errors import AdvisoryUnavailable

logger = logging.getLogger(__name__)

RISK_LEVELS = ["LOW", "MEDIUM", "HIGH"]

SENSITIVE_CATEGORIES = [
    "Biometric Data",
    "Health Information",
    "Financial Information",
    "Government IDs",
]

# Scores reported for advisory-derived tiers.
ADVISORY_SCORES = {"HIGH": 8, "MEDIUM": 4, "LOW": 1}

FIRST_INTEGER_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class ProcessingActivity:
    """The risk-relevant attributes of a processing activity."""
    title: str
    data_categories: Sequence[str]
    data_subjects: Sequence[str]
    retention_period: str
    recipients: Sequence[str]
    description: Optional[str] = None
    lawful_basis: str = ""


@dataclass(frozen=True)
class RiskAssessmentResult:
    """Outcome of one assessment.  Always replaced wholesale, never patched."""
    risk_level: str
    score: int
    reasoning: str
    is_ai: bool
    recommendations: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "riskLevel": self.risk_level,
            "score": self.score,
            "reasoning": self.reasoning,
            "isAI": self.is_ai,
        }
        if self.recommendations is not None:
            data["recommendations"] = list(self.recommendations)
        return data


DEFAULT_ASSESSMENT = RiskAssessmentResult(
    risk_level="MEDIUM",
    score=4,
    reasoning="Default medium risk assessment",
    is_ai=False,
)


def parse_retention_years(retention_period: str) -> int:
    """Read the first integer in a free-text retention period as years.

    The unit is not checked: ``"30 days"`` yields 30.  Text without any
    digits yields 0.
    """
    match = FIRST_INTEGER_RE.search(retention_period or "")
    return int(match.group(0)) if match else 0


def _has_sensitive_category(data_categories: Iterable[str]) -> bool:
    return any(sensitive in category for category in data_categories for sensitive in SENSITIVE_CATEGORIES)


def _tiered(count: int, high: int, medium: int) -> int:
    if count >= high:
        return 2
    if count >= medium:
        return 1
    return 0


def calculate_risk_score(
    data_categories: Sequence[str],
    data_subjects: Sequence[str],
    retention_period: str,
    recipients: Sequence[str],
) -> Tuple[int, Dict[str, int]]:
    """Score a processing activity with the rule-based model.

    Returns:
        A tuple of (total score, per-factor breakdown).
    """
    retention_years = parse_retention_years(retention_period)
    if retention_years > 5:
        retention_points = 2
    elif retention_years > 1:
        retention_points = 1
    else:
        retention_points = 0

    breakdown = {
        "data_sensitivity": 3 if _has_sensitive_category(data_categories) else 1,
        "categories_count": _tiered(len(data_categories), high=5, medium=3),
        "subjects_count": _tiered(len(data_subjects), high=4, medium=2),
        "retention_period": retention_points,
        "recipients": _tiered(len(recipients), high=5, medium=3),
    }
    return sum(breakdown.values()), breakdown


def score_to_risk_level(score: int) -> str:
    if score <= 2:
        return "LOW"
    if score <= 6:
        return "MEDIUM"
    return "HIGH"


def assess_rule_based(activity: ProcessingActivity) -> RiskAssessmentResult:
    """Assess an activity with the rule-based model only."""
    score, breakdown = calculate_risk_score(
        activity.data_categories,
        activity.data_subjects,
        activity.retention_period,
        activity.recipients,
    )
    factors = ", ".join(f"{name}={points}" for name, points in breakdown.items())
    return RiskAssessmentResult(
        risk_level=score_to_risk_level(score),
        score=score,
        reasoning=f"Rule-based assessment: {factors} (total={score})",
        is_ai=False,
    )


class RiskAssessor:
    """Advisory-first risk assessment with rule-based fallback.

    The ``state`` object is the circuit breaker shared by every assessment
    made through this assessor.  A transport failure marks it unavailable;
    a malformed answer does not.
    """

    def __init__(
        self,
        client: Optional[AdvisoryClient] = None,
        state: Optional[AdvisoryServiceState] = None,
        enabled: bool = True,
    ) -> None:
        self.client = client
        self.state = state or AdvisoryServiceState()
        self.enabled = enabled

    def assess(self, activity: ProcessingActivity) -> RiskAssessmentResult:
        try:
            result = self._assess_with_advisory(activity)
            if result is not None:
                return result
            return assess_rule_based(activity)
        except Exception:
            logger.exception("Risk assessment failed for %r, using default assessment", getattr(activity, "title", None))
            return DEFAULT_ASSESSMENT

    def _assess_with_advisory(self, activity: ProcessingActivity) -> Optional[RiskAssessmentResult]:
        if not self.enabled or self.client is None or not self.state.is_available():
            return None
        try:
            analysis = self.client.analyze_process(
                activity.title,
                activity.description,
                list(activity.data_categories),
                list(activity.data_subjects),
            )
        except AdvisoryUnavailable as exc:
            logger.error("Advisory analysis error: %s", exc)
            self.state.mark_unavailable()
            return None
        if analysis is None:
            return None
        return RiskAssessmentResult(
            risk_level=analysis.risk_level,
            score=ADVISORY_SCORES[analysis.risk_level],
            reasoning=analysis.reasoning,
            is_ai=True,
            recommendations=tuple(analysis.recommendations),
        )

    def assess_many(self, activities: Mapping[str, ProcessingActivity]) -> Dict[str, RiskAssessmentResult]:
        """Assess several activities keyed by record id, one after another."""
        return {record_id: self.assess(activity) for record_id, activity in activities.items()}

    def reset_advisory(self) -> None:
        self.state.reset()

    def status(self) -> Dict[str, Any]:
        url = self.client.base_url if self.client is not None else None
        return {
            "enabled": self.enabled,
            "available": self.state.is_available(),
            "url": url,
            "provider": PROVIDER_NAME,
        }


def summarize_risk_levels(levels: Iterable[Optional[str]]) -> Dict[str, int]:
    """Count risk tiers; records without a tier are counted as UNASSESSED."""
    summary = {"LOW": 0, "MEDIUM": 0, "HIGH": 0, "UNASSESSED": 0}
    for level in levels:
        summary[level if level in RISK_LEVELS else "UNASSESSED"] += 1
    return summary
