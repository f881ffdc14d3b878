"""
Points Calculation

This module computes itemized points awards for:
1. Code submissions scored by the AI analyzer
2. Challenge completions
3. Peer reviews given
4. Community contributions
5. Activity streaks

Every calculation carries an ordered breakdown whose lines sum to the total.
"""

from typing import Any, Dict, List, Optional, Union

from skillforge.common.config import PointsConfig, get_config
from skillforge.common.logger import app_logger
from skillforge.common.utils import clamp, round_half_up
from skillforge.gamification.models import (
    AIAnalysisResult, Challenge, ChallengeSubmission, ContributionType, ImpactLevel,
    PointsBreakdown, PointsCalculation, RarityLevel, StreakType
)
from skillforge.performance.difficulty import DifficultyTier

# Module logger
logger = app_logger.getChild("gamification.points")

ConfigOverride = Union[PointsConfig, Dict[str, Any], None]


def _fmt(value: float) -> str:
    """Render a number without a trailing ``.0``."""
    return f"{value:g}"


class PointsCalculator:
    """
    Calculator for all points-earning activities.

    Calculations never raise for absent optional inputs; scores outside
    their documented ranges are clamped so every line stays non-negative.
    """

    # Base points per challenge tier
    CHALLENGE_BASE_POINTS = {
        DifficultyTier.BEGINNER: 50,
        DifficultyTier.INTERMEDIATE: 75,
        DifficultyTier.ADVANCED: 100,
        DifficultyTier.EXPERT: 150
    }

    PERFORMANCE_BONUS_RATE = 0.5
    SPEED_BONUS_RATE = 0.3
    SPEED_BONUS_TIME_RATIO = 0.5
    PERFECT_SCORE_BONUS_RATE = 0.2
    AI_ANALYSIS_BONUS_RATE = 0.3

    REVIEW_BASE_POINTS = 20
    REVIEW_QUALITY_POINTS_PER_STAR = 10
    REVIEW_HELPFULNESS_POINTS_PER_STAR = 8
    REVIEW_CHARACTERS_PER_POINT = 50
    REVIEW_MAX_DETAIL_BONUS = 20
    FIRST_REVIEW_BONUS = 15

    MAX_VOTES_BONUS = 50
    POINTS_PER_VOTE = 2
    ACCEPTANCE_BONUS_RATE = 0.5

    MAX_STREAK_BASE_BONUS = 100
    STREAK_POINTS_PER_DAY = 2
    STREAK_MILESTONES = (7, 14, 30, 60, 100)

    def __init__(self, config: Optional[PointsConfig] = None):
        """
        Initialize the calculator.

        Args:
            config: Points tuning, defaults to the loaded application config
        """
        self.config = config or get_config().points

    def _resolve_config(self, override: ConfigOverride) -> PointsConfig:
        if override is None:
            return self.config
        if isinstance(override, PointsConfig):
            return override
        return PointsConfig(**{**self.config.model_dump(), **override})

    def calculate_code_submission_points(
        self,
        analysis: AIAnalysisResult,
        difficulty: DifficultyTier = DifficultyTier.INTERMEDIATE,
        config: ConfigOverride = None
    ) -> PointsCalculation:
        """
        Calculate points for a code submission from its AI analysis.

        Base points interpolate the configured range by the mean of the four
        sub-scores. Each sub-score then earns a bonus proportional to the base,
        and the tier multiplier's surplus over 1x becomes a difficulty bonus.

        Args:
            analysis: AI analysis of the submission
            difficulty: Tier the submission was made at
            config: Full config or partial overrides for this call

        Returns:
            Itemized points calculation
        """
        cfg = self._resolve_config(config)
        difficulty = DifficultyTier.coerce(difficulty)
        breakdown: List[PointsBreakdown] = []

        quality = clamp(analysis.code_quality, 0, 100)
        efficiency = clamp(analysis.efficiency, 0, 100)
        creativity = clamp(analysis.creativity, 0, 100)
        best_practices = clamp(analysis.best_practices, 0, 100)
        average_quality = (quality + efficiency + creativity + best_practices) / 4

        points_range = cfg.base_points_range
        base_points = round_half_up(
            points_range.min + (average_quality / 100) * (points_range.max - points_range.min)
        )
        breakdown.append(PointsBreakdown(
            category="Base Points",
            points=base_points,
            description=f"Base points from overall code quality ({average_quality:.1f}%)"
        ))

        bonuses = []
        for category, label, score, multiplier in (
            ("Code Quality Bonus", "code quality", quality, cfg.quality_bonus_multiplier),
            ("Efficiency Bonus", "efficiency", efficiency, cfg.efficiency_bonus_multiplier),
            ("Creativity Bonus", "creativity", creativity, cfg.creativity_bonus_multiplier),
            ("Best Practices Bonus", "best practices", best_practices, cfg.best_practices_bonus_multiplier),
        ):
            bonus = round_half_up((score / 100) * base_points * multiplier)
            bonuses.append(bonus)
            breakdown.append(PointsBreakdown(
                category=category,
                points=bonus,
                description=f"Bonus for {label} score of {_fmt(score)}%",
                multiplier=multiplier
            ))

        difficulty_multiplier = cfg.difficulty_multipliers[difficulty.value]
        subtotal = base_points + sum(bonuses)
        difficulty_bonus = round_half_up(subtotal * (difficulty_multiplier - 1))

        if difficulty_bonus > 0:
            breakdown.append(PointsBreakdown(
                category="Difficulty Bonus",
                points=difficulty_bonus,
                description=f"{difficulty.value} difficulty multiplier ({_fmt(difficulty_multiplier)}x)",
                multiplier=difficulty_multiplier
            ))

        quality_bonus, efficiency_bonus, creativity_bonus, best_practices_bonus = bonuses
        return PointsCalculation(
            base_points=base_points,
            quality_bonus=quality_bonus,
            efficiency_bonus=efficiency_bonus,
            creativity_bonus=creativity_bonus,
            best_practices_bonus=best_practices_bonus,
            difficulty_multiplier=difficulty_multiplier,
            total_points=subtotal + max(0, difficulty_bonus),
            breakdown=breakdown
        )

    def calculate_challenge_points(
        self,
        challenge: Challenge,
        submission: ChallengeSubmission,
        completion_time: Optional[float] = None
    ) -> PointsCalculation:
        """
        Calculate points for completing a challenge.

        Args:
            challenge: The completed challenge (time limit in minutes)
            submission: The graded submission
            completion_time: Seconds the learner took, when known

        Returns:
            Itemized points calculation. The generic bonus fields carry the
            performance, speed, perfect-score and AI-analysis bonuses.
        """
        breakdown: List[PointsBreakdown] = []
        difficulty = challenge.difficulty
        score = clamp(submission.total_score, 0, 100)

        base_points = self.CHALLENGE_BASE_POINTS[difficulty]
        breakdown.append(PointsBreakdown(
            category="Challenge Base Points",
            points=base_points,
            description=f"Base points for {difficulty.value} challenge"
        ))

        performance_bonus = round_half_up((score / 100) * base_points * self.PERFORMANCE_BONUS_RATE)
        breakdown.append(PointsBreakdown(
            category="Performance Bonus",
            points=performance_bonus,
            description=f"Bonus for {_fmt(score)}% completion score",
            multiplier=self.PERFORMANCE_BONUS_RATE
        ))

        speed_bonus = 0
        if completion_time and challenge.time_limit:
            time_ratio = completion_time / (challenge.time_limit * 60)
            if time_ratio < self.SPEED_BONUS_TIME_RATIO:
                speed_bonus = round_half_up(base_points * self.SPEED_BONUS_RATE)
                breakdown.append(PointsBreakdown(
                    category="Speed Bonus",
                    points=speed_bonus,
                    description=f"Fast completion bonus ({round_half_up(time_ratio * 100)}% of time limit)"
                ))

        perfect_bonus = 0
        if score == 100:
            perfect_bonus = round_half_up(base_points * self.PERFECT_SCORE_BONUS_RATE)
            breakdown.append(PointsBreakdown(
                category="Perfect Score Bonus",
                points=perfect_bonus,
                description="Bonus for 100% completion"
            ))

        ai_bonus = 0
        if submission.ai_analysis is not None:
            ai_points = self.calculate_code_submission_points(submission.ai_analysis, difficulty)
            ai_bonus = round_half_up(ai_points.total_points * self.AI_ANALYSIS_BONUS_RATE)
            breakdown.append(PointsBreakdown(
                category="AI Analysis Bonus",
                points=ai_bonus,
                description="Bonus from AI code quality analysis"
            ))

        return PointsCalculation(
            base_points=base_points,
            quality_bonus=performance_bonus,
            efficiency_bonus=speed_bonus,
            creativity_bonus=perfect_bonus,
            best_practices_bonus=ai_bonus,
            difficulty_multiplier=self.config.difficulty_multipliers[difficulty.value],
            total_points=base_points + performance_bonus + speed_bonus + perfect_bonus + ai_bonus,
            breakdown=breakdown
        )

    def calculate_peer_review_points(
        self,
        review_quality: float,
        review_length: int,
        helpfulness: float,
        is_first_review: bool = False
    ) -> PointsCalculation:
        """
        Calculate points for giving a peer review.

        Args:
            review_quality: 1-5 rating of the review itself
            review_length: Length of the review in characters
            helpfulness: 1-5 rating from the reviewee
            is_first_review: Whether this was the first review of the submission

        Returns:
            Itemized points calculation
        """
        breakdown: List[PointsBreakdown] = []
        review_quality = clamp(review_quality, 1, 5)
        helpfulness = clamp(helpfulness, 1, 5)
        review_length = max(0, review_length)

        base_points = self.REVIEW_BASE_POINTS
        breakdown.append(PointsBreakdown(
            category="Review Base Points",
            points=base_points,
            description="Base points for providing peer review"
        ))

        quality_bonus = round_half_up((review_quality - 1) * self.REVIEW_QUALITY_POINTS_PER_STAR)
        breakdown.append(PointsBreakdown(
            category="Review Quality Bonus",
            points=quality_bonus,
            description=f"Quality bonus for {_fmt(review_quality)}/5 rating"
        ))

        detail_bonus = min(
            self.REVIEW_MAX_DETAIL_BONUS,
            round_half_up(review_length / self.REVIEW_CHARACTERS_PER_POINT)
        )
        breakdown.append(PointsBreakdown(
            category="Detail Bonus",
            points=detail_bonus,
            description=f"Bonus for detailed review ({review_length} characters)"
        ))

        helpfulness_bonus = round_half_up((helpfulness - 1) * self.REVIEW_HELPFULNESS_POINTS_PER_STAR)
        breakdown.append(PointsBreakdown(
            category="Helpfulness Bonus",
            points=helpfulness_bonus,
            description=f"Helpfulness bonus for {_fmt(helpfulness)}/5 rating"
        ))

        first_review_bonus = 0
        if is_first_review:
            first_review_bonus = self.FIRST_REVIEW_BONUS
            breakdown.append(PointsBreakdown(
                category="First Review Bonus",
                points=first_review_bonus,
                description="Bonus for being the first to review"
            ))

        return PointsCalculation(
            base_points=base_points,
            quality_bonus=quality_bonus,
            efficiency_bonus=detail_bonus,
            creativity_bonus=helpfulness_bonus,
            best_practices_bonus=first_review_bonus,
            difficulty_multiplier=1.0,
            total_points=base_points + quality_bonus + detail_bonus + helpfulness_bonus + first_review_bonus,
            breakdown=breakdown
        )

    def calculate_community_points(
        self,
        contribution_type: ContributionType,
        impact: ImpactLevel,
        community_votes: int = 0,
        is_accepted: bool = False
    ) -> PointsCalculation:
        """
        Calculate points for a community contribution.

        Args:
            contribution_type: Kind of contribution
            impact: Assessed impact
            community_votes: Votes the contribution received
            is_accepted: Whether maintainers accepted it

        Returns:
            Itemized points calculation
        """
        contribution_type = ContributionType(contribution_type)
        impact = ImpactLevel(impact)
        breakdown: List[PointsBreakdown] = []

        base_points = contribution_type.base_points
        breakdown.append(PointsBreakdown(
            category="Contribution Base Points",
            points=base_points,
            description=f"Base points for {contribution_type.value.replace('_', ' ')}"
        ))

        impact_bonus = round_half_up(base_points * (impact.multiplier - 1))
        if impact_bonus > 0:
            breakdown.append(PointsBreakdown(
                category="Impact Bonus",
                points=impact_bonus,
                description=f"{impact.value} impact multiplier",
                multiplier=impact.multiplier
            ))

        votes_bonus = min(self.MAX_VOTES_BONUS, max(0, community_votes) * self.POINTS_PER_VOTE)
        if votes_bonus > 0:
            breakdown.append(PointsBreakdown(
                category="Community Votes Bonus",
                points=votes_bonus,
                description=f"Bonus for {community_votes} community votes"
            ))

        acceptance_bonus = 0
        if is_accepted:
            acceptance_bonus = round_half_up(base_points * self.ACCEPTANCE_BONUS_RATE)
            breakdown.append(PointsBreakdown(
                category="Acceptance Bonus",
                points=acceptance_bonus,
                description="Bonus for accepted contribution"
            ))

        return PointsCalculation(
            base_points=base_points,
            quality_bonus=impact_bonus,
            efficiency_bonus=votes_bonus,
            creativity_bonus=acceptance_bonus,
            best_practices_bonus=0,
            difficulty_multiplier=impact.multiplier,
            total_points=base_points + impact_bonus + votes_bonus + acceptance_bonus,
            breakdown=breakdown
        )

    def calculate_streak_bonus(self, streak_days: int, streak_type: StreakType) -> PointsCalculation:
        """
        Calculate the bonus for an activity streak.

        Every milestone the streak has reached contributes its own line.
        """
        streak_type = StreakType(streak_type)
        streak_days = max(0, streak_days)
        breakdown: List[PointsBreakdown] = []

        base_bonus = min(self.MAX_STREAK_BASE_BONUS, streak_days * self.STREAK_POINTS_PER_DAY)
        breakdown.append(PointsBreakdown(
            category="Streak Base Bonus",
            points=base_bonus,
            description=f"{streak_days} day {streak_type.value.replace('_', ' ')} streak"
        ))

        milestone_bonus = 0
        for milestone in self.STREAK_MILESTONES:
            if streak_days >= milestone:
                bonus = milestone * 2
                milestone_bonus += bonus
                breakdown.append(PointsBreakdown(
                    category=f"{milestone}-Day Milestone",
                    points=bonus,
                    description=f"Milestone bonus for {milestone} day streak"
                ))

        return PointsCalculation(
            base_points=base_bonus,
            best_practices_bonus=milestone_bonus,
            difficulty_multiplier=1.0,
            total_points=base_bonus + milestone_bonus,
            breakdown=breakdown
        )

    def calculate_rarity_bonus(self, rarity: RarityLevel) -> int:
        """Bonus points for earning a badge of the given rarity."""
        return self.config.rarity_bonuses[RarityLevel(rarity).value]

    @staticmethod
    def validate_points_calculation(calculation: PointsCalculation) -> bool:
        """Check the breakdown sums to the total within one point."""
        return abs(calculation.breakdown_total - calculation.total_points) <= 1

    @staticmethod
    def format_points_breakdown(calculation: PointsCalculation) -> str:
        """Render a calculation as display text."""
        lines = [f"Total Points: {calculation.total_points}", "", "Breakdown:"]
        for item in calculation.breakdown:
            line = f"• {item.category}: {item.points} points"
            if item.multiplier:
                line += f" ({_fmt(item.multiplier)}x multiplier)"
            lines.append(line)
            lines.append(f"  {item.description}")
        return "\n".join(lines) + "\n"
