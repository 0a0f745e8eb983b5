"""
Score and summary for one AnalysisResult.

Two weighting policies exist and are never mixed: the flat policy counts
findings, the severity policy weighs issues by severity. Both are pydantic
models so their weights can come from settings.
"""
from __future__ import annotations

import logging
from typing import Literal, Tuple, Union

from pydantic import BaseModel, Field

from qcr.core.errors import ConfigurationError
from qcr.core.schemas import AnalysisResult

logger = logging.getLogger(__name__)

MAX_SCORE = 100

SUMMARY_EXCELLENT = "Excellent code quality! Minor improvements suggested."
SUMMARY_GOOD = "Good code quality with some areas for improvement."
SUMMARY_CRITICAL = "Critical security issues found! Immediate action required."
SUMMARY_SIGNIFICANT = "Significant improvements needed. Review all issues carefully."


class FlatPenaltyPolicy(BaseModel):
    kind: Literal["flat"] = "flat"
    issue_penalty: float = Field(default=15, ge=0)
    suggestion_penalty: float = Field(default=5, ge=0)

    def penalty(self, result: AnalysisResult) -> float:
        return self.issue_penalty * len(result.issues) + self.suggestion_penalty * len(result.suggestions)


class SeverityWeightedPolicy(BaseModel):
    kind: Literal["severity"] = "severity"
    critical: float = Field(default=20, ge=0)
    high: float = Field(default=10, ge=0)
    medium: float = Field(default=5, ge=0)
    low: float = Field(default=0, ge=0)
    per_suggestion: float = Field(default=2, ge=0)

    def penalty(self, result: AnalysisResult) -> float:
        # suggestions cost the same whatever their severity
        issue_cost = sum(getattr(self, f.severity) for f in result.issues)
        return issue_cost + self.per_suggestion * len(result.suggestions)


ScoringPolicy = Union[FlatPenaltyPolicy, SeverityWeightedPolicy]

POLICIES = {
    "flat": FlatPenaltyPolicy,
    "severity": SeverityWeightedPolicy,
}


def policy_from_name(name: str, **weights: float) -> ScoringPolicy:
    try:
        cls = POLICIES[name.lower().strip()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown scoring policy {name!r}. Expected one of: {', '.join(sorted(POLICIES))}"
        ) from None
    return cls(**weights)


def compute_score(result: AnalysisResult, policy: ScoringPolicy) -> int:
    raw = MAX_SCORE - policy.penalty(result)
    return max(0, min(MAX_SCORE, int(round(raw))))


def select_summary(score: int, has_critical: bool) -> str:
    if score >= 90:
        return SUMMARY_EXCELLENT
    if score >= 75:
        return SUMMARY_GOOD
    # a critical issue outranks the generic low-score message
    if has_critical:
        return SUMMARY_CRITICAL
    return SUMMARY_SIGNIFICANT


def summarize(result: AnalysisResult, policy: ScoringPolicy) -> Tuple[int, str]:
    score = compute_score(result, policy)
    logger.debug(
        "%s policy: %d issues, %d suggestions -> %d",
        policy.kind, len(result.issues), len(result.suggestions), score,
    )
    return score, select_summary(score, result.has_critical)


def score_band(score: int) -> str:
    """Display band used by the CLI and the upload UI."""
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"
