"""
Challenge Difficulty Classification

This module turns raw complexity metrics into a difficulty tier, judges
whether a learner is ready for a challenge, and adapts challenge difficulty
from recent performance.
"""

import enum
import math
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Mapping, Sequence, TYPE_CHECKING

from skillforge.common.exceptions import ValidationError
from skillforge.common.logger import app_logger
from skillforge.common.serialization import SerializableMixin
from skillforge.common.utils import clamp, mean, round_half_up

if TYPE_CHECKING:
    from skillforge.gamification.models import SkillLevel

# Module logger
logger = app_logger.getChild("performance.difficulty")


class DifficultyTier(enum.Enum):
    """Difficulty tiers shared by challenges, points and badges."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def ordered(cls) -> List['DifficultyTier']:
        """Tiers from easiest to hardest."""
        return [cls.BEGINNER, cls.INTERMEDIATE, cls.ADVANCED, cls.EXPERT]

    @classmethod
    def coerce(cls, value: Any) -> 'DifficultyTier':
        """Accept a tier or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(
                f"Unknown difficulty tier: {value!r}",
                {"tier": [t.value for t in cls]}
            )

    @property
    def ordinal(self) -> int:
        """Position of the tier, 0 for beginner."""
        return DifficultyTier.ordered().index(self)

    def step(self, delta: int) -> 'DifficultyTier':
        """Move ``delta`` tiers, stopping at beginner and expert."""
        tiers = DifficultyTier.ordered()
        index = clamp(self.ordinal + delta, 0, len(tiers) - 1)
        return tiers[index]

    @property
    def minimum_skill_level(self) -> int:
        """Skill level a learner needs before attempting this tier."""
        return {
            DifficultyTier.BEGINNER: 1,
            DifficultyTier.INTERMEDIATE: 3,
            DifficultyTier.ADVANCED: 6,
            DifficultyTier.EXPERT: 8
        }[self]

    @property
    def base_duration_minutes(self) -> int:
        """Baseline time to complete a challenge of this tier."""
        return {
            DifficultyTier.BEGINNER: 15,
            DifficultyTier.INTERMEDIATE: 30,
            DifficultyTier.ADVANCED: 60,
            DifficultyTier.EXPERT: 120
        }[self]


class TimeComplexity(enum.Enum):
    """Asymptotic time-complexity classes, ordered by growth."""
    CONSTANT = "O(1)"
    LOGARITHMIC = "O(log n)"
    LINEAR = "O(n)"
    LINEARITHMIC = "O(n log n)"
    QUADRATIC = "O(n²)"
    CUBIC = "O(n³)"
    EXPONENTIAL = "O(2^n)"
    FACTORIAL = "O(n!)"

    @classmethod
    def parse(cls, value: Any) -> Optional['TimeComplexity']:
        """
        Parse a Big-O string; returns None for unrecognized notation.

        ASCII spellings ``O(n^2)`` and ``O(n^3)`` are accepted.
        """
        if isinstance(value, cls):
            return value
        text = " ".join(str(value).split())
        text = text.replace("^2", "²").replace("^3", "³")
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return None

    @property
    def score(self) -> int:
        """Normalized 0-100 contribution of this class."""
        return {
            TimeComplexity.CONSTANT: 10,
            TimeComplexity.LOGARITHMIC: 20,
            TimeComplexity.LINEAR: 40,
            TimeComplexity.LINEARITHMIC: 60,
            TimeComplexity.QUADRATIC: 80,
            TimeComplexity.CUBIC: 90,
            TimeComplexity.EXPONENTIAL: 100,
            TimeComplexity.FACTORIAL: 100
        }[self]


# Score for notation we cannot place on the table
UNKNOWN_TIME_COMPLEXITY_SCORE = 50


@dataclass(frozen=True)
class DifficultyMetrics:
    """Raw complexity metrics describing a challenge."""
    concept_complexity: float
    code_length: int
    algorithmic_complexity: float
    prerequisite_count: int
    time_complexity: str
    domain_specificity: float


@dataclass
class DifficultyClassification(SerializableMixin):
    """Result of classifying a challenge's difficulty."""

    __serializable_fields__ = [
        "level", "score", "reasoning", "recommended_skill_level", "estimated_duration"
    ]

    level: DifficultyTier
    score: float
    reasoning: List[str]
    recommended_skill_level: int
    estimated_duration: int


@dataclass
class ReadinessAssessment(SerializableMixin):
    """Whether a learner is ready for a challenge, and what they lack."""

    __serializable_fields__ = ["ready", "missing_skills", "recommendations"]

    ready: bool
    missing_skills: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


class DifficultyAdjustment:
    """
    Records one adaptation decision.

    Tracks the tier before and after, why it moved (or did not), and the
    performance figures that drove the decision.
    """

    def __init__(
        self,
        previous_level: DifficultyTier,
        new_level: DifficultyTier,
        reason: str,
        average_score: Optional[float] = None,
        success_rate: Optional[float] = None,
        timestamp: Optional[datetime.datetime] = None
    ):
        self.previous_level = previous_level
        self.new_level = new_level
        self.reason = reason
        self.average_score = average_score
        self.success_rate = success_rate
        self.timestamp = timestamp or datetime.datetime.now()

    @property
    def magnitude(self) -> int:
        """Signed number of tiers moved."""
        return self.new_level.ordinal - self.previous_level.ordinal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "previous_level": self.previous_level.value,
            "new_level": self.new_level.value,
            "reason": self.reason,
            "average_score": self.average_score,
            "success_rate": self.success_rate,
            "timestamp": self.timestamp.isoformat(),
            "magnitude": self.magnitude
        }


class DifficultyClassifier:
    """
    Classifies challenges and matches them to learners.

    All methods are pure; the class only groups the weight and band tables.
    """

    # Upper bounds of each score band (inclusive)
    DIFFICULTY_THRESHOLDS = {
        DifficultyTier.BEGINNER: 25,
        DifficultyTier.INTERMEDIATE: 50,
        DifficultyTier.ADVANCED: 75,
        DifficultyTier.EXPERT: 100
    }

    COMPLEXITY_WEIGHTS = {
        "concept_complexity": 0.25,
        "code_length": 0.15,
        "algorithmic_complexity": 0.30,
        "prerequisite_count": 0.15,
        "time_complexity": 0.10,
        "domain_specificity": 0.05
    }

    # Reference maxima for the capped-ratio normalizations
    REFERENCE_CODE_LENGTH = 200
    REFERENCE_PREREQUISITES = 10

    # Effective skill level cut-offs for suggesting a tier
    SUGGESTION_THRESHOLDS = (2, 4, 7)

    MINIMUM_RECENT_SCORES = 3

    @classmethod
    def classify_difficulty(cls, metrics: DifficultyMetrics) -> DifficultyClassification:
        """
        Classify a challenge from its complexity metrics.

        Args:
            metrics: Raw complexity metrics

        Returns:
            Tier, score, reasoning, recommended skill level and duration
        """
        score = cls.calculate_difficulty_score(metrics)
        level = cls.score_to_tier(score)

        return DifficultyClassification(
            level=level,
            score=score,
            reasoning=cls._generate_reasoning(metrics),
            recommended_skill_level=max(1, math.ceil(score / 10)),
            estimated_duration=cls._estimate_duration(metrics, level)
        )

    @classmethod
    def calculate_difficulty_score(cls, metrics: DifficultyMetrics) -> float:
        """Weighted 0-100 difficulty score."""
        weights = cls.COMPLEXITY_WEIGHTS

        time_complexity = TimeComplexity.parse(metrics.time_complexity)
        if time_complexity is None:
            logger.debug(f"Unrecognized time complexity {metrics.time_complexity!r}")
            time_score = UNKNOWN_TIME_COMPLEXITY_SCORE
        else:
            time_score = time_complexity.score

        sub_scores = {
            "concept_complexity": metrics.concept_complexity / 10 * 100,
            "code_length": min(metrics.code_length / cls.REFERENCE_CODE_LENGTH, 1) * 100,
            "algorithmic_complexity": metrics.algorithmic_complexity / 10 * 100,
            "prerequisite_count": min(metrics.prerequisite_count / cls.REFERENCE_PREREQUISITES, 1) * 100,
            "time_complexity": time_score,
            "domain_specificity": metrics.domain_specificity / 10 * 100
        }

        score = sum(sub_scores[name] * weights[name] for name in weights)
        return clamp(score, 0.0, 100.0)

    @classmethod
    def score_to_tier(cls, score: float) -> DifficultyTier:
        """Read the tier off the score bands."""
        for tier in DifficultyTier.ordered():
            if score <= cls.DIFFICULTY_THRESHOLDS[tier]:
                return tier
        return DifficultyTier.EXPERT

    @classmethod
    def is_user_ready_for_challenge(
        cls,
        user_skills: Mapping[str, "SkillLevel"],
        challenge_skills: Sequence[str],
        difficulty: DifficultyTier
    ) -> ReadinessAssessment:
        """
        Check a learner's skills against a challenge.

        A skill absent from the profile is reported as missing; a skill below
        the tier's floor produces a level-up recommendation. Every shortfall
        lands in at least one of the two lists, so an empty pair means ready.

        Args:
            user_skills: Learner skills keyed by skill id
            challenge_skills: Skill ids the challenge exercises
            difficulty: Challenge tier

        Returns:
            Readiness verdict with missing skills and recommendations
        """
        difficulty = DifficultyTier.coerce(difficulty)
        required_level = difficulty.minimum_skill_level
        assessment = ReadinessAssessment(ready=False)

        for skill_id in challenge_skills:
            skill = user_skills.get(skill_id)
            if skill is None:
                assessment.missing_skills.append(skill_id)
                assessment.recommendations.append(
                    f"Learn the basics of {skill_id} before attempting this challenge"
                )
            elif skill.current_level < required_level:
                assessment.recommendations.append(
                    f"Improve your {skill_id} skills to level {required_level} "
                    f"(currently level {skill.current_level})"
                )

        assessment.ready = not assessment.missing_skills and not assessment.recommendations
        return assessment

    @classmethod
    def suggest_difficulty_for_user(
        cls,
        user_skills: Mapping[str, "SkillLevel"],
        target_skills: Sequence[str]
    ) -> DifficultyTier:
        """
        Suggest a tier from the learner's levels in the targeted skills.

        Blends the average and the best matched level (70/30).
        """
        levels = [
            user_skills[skill_id].current_level
            for skill_id in target_skills
            if skill_id in user_skills
        ]
        if not levels:
            return DifficultyTier.BEGINNER

        effective_level = mean(levels) * 0.7 + max(levels) * 0.3

        for tier, threshold in zip(DifficultyTier.ordered(), cls.SUGGESTION_THRESHOLDS):
            if effective_level < threshold:
                return tier
        return DifficultyTier.EXPERT

    @classmethod
    def adapt_difficulty_based_on_performance(
        cls,
        current: DifficultyTier,
        recent_scores: Sequence[float],
        success_rate: float
    ) -> DifficultyTier:
        """
        Step the tier up or down by one from recent results.

        Returns ``current`` unchanged when fewer than three scores are known.
        """
        return cls.adapt_with_reason(current, recent_scores, success_rate).new_level

    @classmethod
    def adapt_with_reason(
        cls,
        current: DifficultyTier,
        recent_scores: Sequence[float],
        success_rate: float
    ) -> DifficultyAdjustment:
        """Same decision as ``adapt_difficulty_based_on_performance``, with its audit record."""
        current = DifficultyTier.coerce(current)

        if len(recent_scores) < cls.MINIMUM_RECENT_SCORES:
            return DifficultyAdjustment(
                previous_level=current,
                new_level=current,
                reason="insufficient_data",
                success_rate=success_rate
            )

        average_score = mean(recent_scores)

        if average_score > 85 and success_rate > 0.8:
            new_level, reason = current.step(1), "high_performance"
        elif average_score < 50 and success_rate < 0.4:
            new_level, reason = current.step(-1), "low_performance"
        else:
            new_level, reason = current, "within_target"

        adjustment = DifficultyAdjustment(
            previous_level=current,
            new_level=new_level,
            reason=reason,
            average_score=average_score,
            success_rate=success_rate
        )
        if adjustment.magnitude:
            logger.debug(
                f"Adapted difficulty from {current.value} to {new_level.value} ({reason})"
            )
        return adjustment

    @classmethod
    def _estimate_duration(cls, metrics: DifficultyMetrics, level: DifficultyTier) -> int:
        complexity_multiplier = 1 + metrics.concept_complexity / 20
        length_multiplier = 1 + metrics.code_length / 400
        return round_half_up(level.base_duration_minutes * complexity_multiplier * length_multiplier)

    @staticmethod
    def _generate_reasoning(metrics: DifficultyMetrics) -> List[str]:
        reasoning = []

        if metrics.concept_complexity >= 7:
            reasoning.append("High conceptual complexity requiring advanced understanding")
        if metrics.algorithmic_complexity >= 7:
            reasoning.append("Complex algorithms and data structures required")
        if metrics.prerequisite_count >= 5:
            reasoning.append("Multiple prerequisite skills needed")
        if metrics.code_length > 100:
            reasoning.append("Substantial implementation required")
        if metrics.domain_specificity >= 7:
            reasoning.append("Specialized domain knowledge required")

        if not reasoning:
            reasoning.append("Straightforward implementation with basic concepts")

        return reasoning
