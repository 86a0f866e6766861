"""
Score classifiers for flag detection and change risk.

Both scores are computed elsewhere: the LLM combines detection signals into a
0.0-1.0 match confidence, and adds up risk points from the pattern catalog.
Only the final bucketing below is executable; the weight tables are published
so the guidance text and the thresholds cannot drift apart.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import ValidationError


class ConfidenceLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recommendation(Enum):
    USE_EXISTING = "use_existing"
    ASK_USER = "ask_user"
    CREATE_NEW = "create_new"


class RiskLevel(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


CONFIDENCE_THRESHOLDS = {
    "high": 0.7,
    "medium": 0.4,
}

RISK_THRESHOLDS = {
    "critical": 5,
    "high": 3,
    "medium": 2,
}

# Advisory: how the caller is told to combine detection signals
DETECTION_WEIGHTS = {
    "unleash-inventory": 0.25,
    "file-based": 0.30,
    "git-history": 0.15,
    "semantic": 0.20,
    "code-context": 0.10,
}

# Advisory: points per matched risk pattern and per change size
RISK_PATTERN_POINTS = {
    "critical": 5,
    "high": 3,
    "medium": 2,
    "low": 1,
}
LARGE_CHANGE_LINES = 100
LARGE_CHANGE_POINTS = 2
MEDIUM_CHANGE_LINES = 50
MEDIUM_CHANGE_POINTS = 1

_RECOMMENDATIONS = {
    ConfidenceLevel.HIGH: Recommendation.USE_EXISTING,
    ConfidenceLevel.MEDIUM: Recommendation.ASK_USER,
    ConfidenceLevel.LOW: Recommendation.CREATE_NEW,
}

_CONFIDENCE_EXPLANATIONS = {
    ConfidenceLevel.HIGH: "Strong match found. This flag very likely covers your use case. Recommend reusing it.",
    ConfidenceLevel.MEDIUM: (
        "Possible match found. This flag might cover your use case, but you should verify. "
        "Consider reusing or creating a new flag."
    ),
    ConfidenceLevel.LOW: (
        "Weak or no match found. The existing flags don't appear to cover your use case. "
        "Recommend creating a new flag."
    ),
}

_RISK_GUIDANCE = {
    RiskLevel.CRITICAL: "Feature flag required.",
    RiskLevel.HIGH: "Feature flag recommended.",
    RiskLevel.MEDIUM: "Consider a feature flag.",
    RiskLevel.LOW: "A feature flag is usually not needed.",
}


@dataclass
class ConfidenceClassification:
    score: float
    level: ConfidenceLevel
    recommendation: Recommendation

    @property
    def explanation(self) -> str:
        return _CONFIDENCE_EXPLANATIONS[self.level]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "recommendation": self.recommendation.value,
            "explanation": self.explanation,
        }


@dataclass
class RiskClassification:
    points: int
    level: RiskLevel

    @property
    def guidance(self) -> str:
        return _RISK_GUIDANCE[self.level]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "level": self.level.value,
            "guidance": self.guidance,
        }


def confidence_level(score: float) -> ConfidenceLevel:
    """Bucket a match score: >= 0.7 high, >= 0.4 medium, else low."""
    if score >= CONFIDENCE_THRESHOLDS["high"]:
        return ConfidenceLevel.HIGH
    if score >= CONFIDENCE_THRESHOLDS["medium"]:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def recommendation_for(level: ConfidenceLevel) -> Recommendation:
    return _RECOMMENDATIONS[level]


def classify_confidence(score: Any) -> ConfidenceClassification:
    """
    Classify a flag-match confidence score.

    Args:
        score: Combined detection score in [0.0, 1.0]

    Returns:
        ConfidenceClassification with level and recommended action

    Raises:
        ValidationError: score is not a finite number in [0.0, 1.0]
    """
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError(f"Confidence score must be a number, got {score!r}")
    if not math.isfinite(score) or score < 0.0 or score > 1.0:
        raise ValidationError(
            f"Confidence score must be between 0.0 and 1.0, got {score}",
            hint="Combine detection signals with the published weights before classifying.",
        )
    level = confidence_level(score)
    return ConfidenceClassification(score=float(score), level=level, recommendation=recommendation_for(level))


def risk_level(points: int) -> RiskLevel:
    """Bucket accumulated risk points: >= 5 critical, >= 3 high, >= 2 medium, else low."""
    if points >= RISK_THRESHOLDS["critical"]:
        return RiskLevel.CRITICAL
    if points >= RISK_THRESHOLDS["high"]:
        return RiskLevel.HIGH
    if points >= RISK_THRESHOLDS["medium"]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_risk(points: Any) -> RiskClassification:
    """
    Classify an accumulated change-risk point total.

    Raises:
        ValidationError: points is not a non-negative integer
    """
    if isinstance(points, float) and math.isfinite(points) and points.is_integer():
        points = int(points)
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValidationError(f"Risk points must be an integer, got {points!r}")
    if points < 0:
        raise ValidationError(f"Risk points cannot be negative, got {points}")
    return RiskClassification(points=points, level=risk_level(points))
