"""
Badge Calculation

This module decides badge eligibility and materializes awards:
1. Criteria validation against an evaluation context
2. Rarity scoring from the declared tier plus contextual bonuses
3. Award records, including special and community variants
4. Achievement progress with fixed milestones

Ineligibility is a normal result. Only catalog mismatches raise.
"""

import math
import datetime
from typing import List, Optional

from skillforge.common.config import EngineConfig, RarityConfig, get_config
from skillforge.common.logger import app_logger
from skillforge.common.utils import clamp, round_half_up
from skillforge.gamification.catalog import BadgeCatalog, CatalogGroup, PERFECT_SCORE_CONDITION
from skillforge.gamification.models import (
    AchievementProgress, BadgeAward, BadgeCriteria, BadgeDefinition, BadgeEligibilityResult,
    BadgeMetadata, BadgeRarity, CommunityBadge, ContributionType, EvaluationContext,
    Milestone, MilestoneReward, RarityCalculation, RarityLevel, SpecialBadge,
    TimeConstraintType, ValidationCriterion
)
from skillforge.performance.difficulty import DifficultyTier

# Module logger
logger = app_logger.getChild("gamification.badges")

NOT_AVAILABLE_SUFFIX = " (not available)"
BADGE_NOT_FOUND = "Badge not found"

MILESTONE_PERCENTAGES = (25, 50, 75, 90, 100)


def _unavailable(criterion: str, threshold=None) -> ValidationCriterion:
    """A criterion whose input is absent from the context."""
    return ValidationCriterion(
        criterion=criterion + NOT_AVAILABLE_SUFFIX,
        value=None,
        passed=False,
        threshold=threshold
    )


class BadgeCalculator:
    """
    Evaluates badges from a catalog against evaluation contexts.

    The calculator holds no per-user state; one instance serves every call.
    """

    def __init__(
        self,
        catalog: Optional[BadgeCatalog] = None,
        rarity_config: Optional[RarityConfig] = None,
        engine_config: Optional[EngineConfig] = None
    ):
        """
        Initialize the badge calculator.

        Args:
            catalog: Badge definitions, defaults to the built-in catalog
            rarity_config: Holder statistics, defaults to the loaded config
            engine_config: Engine settings, defaults to the loaded config
        """
        app_config = get_config()
        self.catalog = catalog or BadgeCatalog.default()
        self.rarity_config = rarity_config or app_config.rarity
        self.engine_config = engine_config or app_config.engine

    def evaluate_badge_eligibility(
        self,
        badge_name: str,
        context: EvaluationContext
    ) -> BadgeEligibilityResult:
        """
        Evaluate whether the context earns a named badge.

        Args:
            badge_name: Name of the badge in the catalog
            context: Evaluation context for the learner

        Returns:
            Eligibility verdict, with the award when eligible
        """
        definition = self.catalog.get(badge_name)
        if definition is None:
            logger.debug(f"Badge {badge_name} not in catalog")
            return BadgeEligibilityResult(
                badge_name=badge_name,
                is_eligible=False,
                missing_criteria=[BADGE_NOT_FOUND],
                progress_to_next=0
            )

        validation_results = self.validate_badge_criteria(definition.criteria, context)
        if definition.is_expired():
            validation_results.append(ValidationCriterion(
                criterion="Badge Availability",
                value=False,
                passed=False,
                threshold=definition.expiration_date
            ))

        if all(result.passed for result in validation_results):
            award = self.create_badge_award(badge_name, definition, context, validation_results)
            return BadgeEligibilityResult(
                badge_name=badge_name,
                is_eligible=True,
                badge_award=award,
                progress_to_next=100,
                validation_results=validation_results
            )

        failed = [result for result in validation_results if not result.passed]
        return BadgeEligibilityResult(
            badge_name=badge_name,
            is_eligible=False,
            missing_criteria=[result.criterion for result in failed],
            progress_to_next=self._progress_to_next(validation_results),
            estimated_time_to_earn=self._estimate_time_to_earn(len(failed)),
            validation_results=validation_results
        )

    def validate_badge_criteria(
        self,
        criteria: BadgeCriteria,
        context: EvaluationContext
    ) -> List[ValidationCriterion]:
        """
        Check every criterion the badge declares.

        Criteria whose input is missing from the context fail with a
        ``(not available)`` suffix on their name.

        Args:
            criteria: Criteria from the badge definition
            context: Evaluation context for the learner

        Returns:
            One result per declared criterion, in a fixed order
        """
        results: List[ValidationCriterion] = []
        progress = context.user_progress
        analysis = context.ai_analysis

        if criteria.minimum_skill_level is not None:
            max_level = progress.max_skill_level
            results.append(ValidationCriterion(
                criterion="Minimum Skill Level",
                value=max_level,
                threshold=criteria.minimum_skill_level,
                passed=max_level >= criteria.minimum_skill_level
            ))

        if criteria.required_points is not None:
            experience = sum(skill.experience_points for skill in progress.skill_levels.values())
            results.append(ValidationCriterion(
                criterion="Required Points",
                value=experience,
                threshold=criteria.required_points,
                passed=experience >= criteria.required_points
            ))

        if criteria.code_quality_threshold is not None:
            if analysis is None:
                results.append(_unavailable("Code Quality Threshold", criteria.code_quality_threshold))
            else:
                results.append(ValidationCriterion(
                    criterion="Code Quality Threshold",
                    value=analysis.code_quality,
                    threshold=criteria.code_quality_threshold,
                    passed=analysis.code_quality >= criteria.code_quality_threshold
                ))

        if criteria.specific_skills:
            required = list(criteria.specific_skills)
            if analysis is None:
                results.append(_unavailable("Specific Skills", required))
            else:
                has_skills = all(skill in analysis.detected_skills for skill in required)
                results.append(ValidationCriterion(
                    criterion="Specific Skills",
                    value=has_skills,
                    threshold=required,
                    passed=has_skills
                ))

        if criteria.challenge_completion:
            if context.submission is None:
                results.append(_unavailable("Challenge Completion"))
            else:
                results.append(ValidationCriterion(
                    criterion="Challenge Completion",
                    value=context.submission.passed,
                    passed=bool(context.submission.passed)
                ))

        if criteria.peer_review_score is not None:
            if context.peer_review_score is None:
                results.append(_unavailable("Peer Review Score", criteria.peer_review_score))
            else:
                results.append(ValidationCriterion(
                    criterion="Peer Review Score",
                    value=context.peer_review_score,
                    threshold=criteria.peer_review_score,
                    passed=context.peer_review_score >= criteria.peer_review_score
                ))

        if criteria.time_constraints is not None:
            results.append(self._validate_time_constraint(criteria, context))

        for condition in criteria.special_conditions:
            results.append(self._validate_special_condition(condition, context))

        return results

    def _validate_time_constraint(
        self,
        criteria: BadgeCriteria,
        context: EvaluationContext
    ) -> ValidationCriterion:
        constraint = criteria.time_constraints
        timing = context.timing

        if constraint.type == TimeConstraintType.CONSECUTIVE_DAYS:
            streak = timing.streak_days if timing is not None else None
            if streak is None:
                streak = context.user_progress.streak_days
            return ValidationCriterion(
                criterion="Time Constraint",
                value=streak,
                threshold=constraint.duration,
                passed=streak >= constraint.duration
            )

        if timing is None or timing.submission_time is None:
            return _unavailable("Time Constraint", constraint.duration)

        return ValidationCriterion(
            criterion="Time Constraint",
            value=timing.submission_time,
            threshold=constraint.duration,
            passed=timing.submission_time <= constraint.duration
        )

    def _validate_special_condition(
        self,
        condition: str,
        context: EvaluationContext
    ) -> ValidationCriterion:
        name = f"Special Condition: {condition}"

        if condition == PERFECT_SCORE_CONDITION:
            if context.submission is None:
                return _unavailable(name, 100)
            return ValidationCriterion(
                criterion=name,
                value=context.submission.total_score,
                threshold=100,
                passed=context.submission.total_score == 100
            )

        logger.warning(f"Unknown special condition {condition!r}, treating as unmet")
        return ValidationCriterion(criterion=name, value=None, passed=False)

    def calculate_badge_rarity(
        self,
        definition: BadgeDefinition,
        context: EvaluationContext,
        validation_results: Optional[List[ValidationCriterion]] = None
    ) -> RarityCalculation:
        """
        Score a badge's rarity for this award.

        Starts from the declared tier's base score and adds difficulty,
        quality, speed and community bonuses. The final score is clamped to
        0-100 and its tier re-derived, so bonuses can promote a badge.

        Args:
            definition: Badge definition
            context: Evaluation context for the learner
            validation_results: Criteria outcomes, kept for callers that score
                against a specific validation run

        Returns:
            Itemized rarity calculation
        """
        base_rarity = RarityLevel(definition.rarity).base_score
        difficulty_bonus = self._difficulty_bonus(definition.criteria)
        quality_bonus = self._quality_bonus(context)
        time_bonus = self._time_bonus(context)
        community_bonus = self._community_bonus(context)

        final_rarity = clamp(
            base_rarity + difficulty_bonus + quality_bonus + time_bonus + community_bonus,
            0, 100
        )

        return RarityCalculation(
            base_rarity=base_rarity,
            difficulty_bonus=difficulty_bonus,
            quality_bonus=quality_bonus,
            time_bonus=time_bonus,
            community_bonus=community_bonus,
            final_rarity=final_rarity,
            rarity_level=RarityLevel.from_score(final_rarity)
        )

    @staticmethod
    def _difficulty_bonus(criteria: BadgeCriteria) -> int:
        bonus = 0
        if criteria.minimum_skill_level is not None and criteria.minimum_skill_level >= 4:
            bonus += 15
        if criteria.code_quality_threshold is not None and criteria.code_quality_threshold >= 90:
            bonus += 10
        if len(criteria.specific_skills) > 2:
            bonus += 5
        if criteria.time_constraints is not None:
            bonus += 10
        return bonus

    @staticmethod
    def _quality_bonus(context: EvaluationContext) -> int:
        if context.ai_analysis is None:
            return 0
        average_quality = context.ai_analysis.average_score
        if average_quality >= 95:
            return 15
        if average_quality >= 90:
            return 10
        if average_quality >= 85:
            return 5
        return 0

    @staticmethod
    def _time_bonus(context: EvaluationContext) -> int:
        timing, challenge = context.timing, context.challenge
        if not timing or not timing.submission_time or not challenge or not challenge.time_limit:
            return 0
        time_ratio = timing.submission_time / (challenge.time_limit * 60)
        if time_ratio < 0.3:
            return 10
        if time_ratio < 0.5:
            return 5
        return 0

    @staticmethod
    def _community_bonus(context: EvaluationContext) -> int:
        score = context.peer_review_score
        if score is None:
            return 0
        if score >= 4.8:
            return 10
        if score >= 4.5:
            return 5
        return 0

    def create_badge_award(
        self,
        badge_name: str,
        definition: BadgeDefinition,
        context: EvaluationContext,
        validation_results: Optional[List[ValidationCriterion]] = None
    ) -> BadgeAward:
        """
        Materialize the award record for an earned badge.

        Args:
            badge_name: Name of the badge
            definition: Badge definition
            context: Evaluation context for the learner
            validation_results: Criteria outcomes recorded as evidence

        Returns:
            A pending badge award
        """
        return BadgeAward(**self._award_fields(badge_name, definition, context, validation_results))

    def _award_fields(
        self,
        badge_name: str,
        definition: BadgeDefinition,
        context: EvaluationContext,
        validation_results: Optional[List[ValidationCriterion]]
    ) -> dict:
        rarity = self.calculate_badge_rarity(definition, context, validation_results)
        holders = self.rarity_config.estimated_holders[rarity.rarity_level.value]
        analysis = context.ai_analysis

        return dict(
            badge_name=badge_name,
            category=definition.category,
            subcategory=definition.subcategory,
            skill_area=definition.skill_area,
            rarity=BadgeRarity(
                level=rarity.rarity_level,
                rarity_score=rarity.final_rarity,
                estimated_holders=holders,
                global_percentage=holders / self.rarity_config.assumed_population * 100
            ),
            description=self._describe(definition, context),
            icon_url=self._icon_url(badge_name, rarity.rarity_level),
            criteria=definition.criteria.to_dict(),
            metadata=BadgeMetadata(
                skills_validated=list(analysis.detected_skills) if analysis else [],
                code_quality_score=analysis.code_quality if analysis else None,
                difficulty_level=self._difficulty_level(context),
                validation_criteria=list(validation_results or [])
            )
        )

    def create_special_badge(
        self,
        badge_name: str,
        context: EvaluationContext,
        event_id: str = "",
        serial_number: Optional[int] = None,
        total_minted: Optional[int] = None
    ) -> SpecialBadge:
        """
        Issue a limited-edition badge from the special catalog.

        Raises:
            ConfigurationError: If the badge is not in the special catalog
        """
        definition = self.catalog.require(CatalogGroup.SPECIAL, badge_name)
        return SpecialBadge(
            **self._award_fields(badge_name, definition, context, None),
            event_id=event_id,
            limited_edition=True,
            serial_number=serial_number,
            total_minted=total_minted,
            expiration_date=definition.expiration_date,
            transferable=False
        )

    def create_community_badge(
        self,
        badge_name: str,
        context: EvaluationContext,
        contribution_type: ContributionType,
        impact_score: int,
        endorsements: Optional[List[str]] = None
    ) -> CommunityBadge:
        """
        Issue a badge for a community contribution.

        Community votes on the badge equal the number of endorsements.

        Raises:
            ConfigurationError: If the badge is not in the community catalog
        """
        definition = self.catalog.require(CatalogGroup.COMMUNITY, badge_name)
        endorsements = list(endorsements or [])
        return CommunityBadge(
            **self._award_fields(badge_name, definition, context, None),
            contribution_type=ContributionType(contribution_type),
            impact_score=impact_score,
            community_votes=len(endorsements),
            endorsements=endorsements
        )

    def track_achievement_progress(
        self,
        user_id: str,
        achievement_id: str,
        current_progress: float,
        target_progress: float,
        now: Optional[datetime.datetime] = None
    ) -> AchievementProgress:
        """
        Compute progress towards an achievement.

        Five milestones are generated at 25/50/75/90/100% of the target. The
        last one rewards the achievement badge, the others points.

        Args:
            user_id: Learner identifier
            achievement_id: Achievement identifier
            current_progress: Progress so far
            target_progress: Progress needed to complete
            now: Evaluation time, defaults to the current time

        Returns:
            Achievement progress with milestones
        """
        now = now or datetime.datetime.now()

        if target_progress > 0:
            percentage = min(100.0, current_progress / target_progress * 100)
        else:
            percentage = 100.0
        is_completed = current_progress >= target_progress

        milestones = []
        for index, milestone_pct in enumerate(MILESTONE_PERCENTAGES, start=1):
            target_value = round_half_up(milestone_pct / 100 * target_progress)
            current_value = min(target_value, current_progress)
            completed = current_value >= target_value

            if milestone_pct == 100:
                reward = MilestoneReward(
                    type="badge",
                    value=achievement_id,
                    description="Achievement completion badge"
                )
            else:
                reward = MilestoneReward(
                    type="points",
                    value=milestone_pct * 2,
                    description="Milestone bonus points"
                )

            milestones.append(Milestone(
                milestone_id=f"{achievement_id}_milestone_{index}",
                name=f"{milestone_pct}% Progress",
                description=f"Reach {milestone_pct}% completion",
                target_value=target_value,
                current_value=current_value,
                is_completed=completed,
                completed_at=now if completed else None,
                reward=reward
            ))

        estimated_completion = None
        if not is_completed:
            remaining = target_progress - current_progress
            days = math.ceil(remaining / self.engine_config.achievement_velocity_per_day)
            estimated_completion = now + datetime.timedelta(days=days)

        return AchievementProgress(
            achievement_id=achievement_id,
            user_id=user_id,
            current_progress=current_progress,
            target_progress=target_progress,
            progress_percentage=percentage,
            milestones=milestones,
            is_completed=is_completed,
            estimated_completion=estimated_completion,
            last_updated=now
        )

    @staticmethod
    def _progress_to_next(validation_results: List[ValidationCriterion]) -> int:
        if not validation_results:
            return 100
        passed = sum(1 for result in validation_results if result.passed)
        return round_half_up(passed / len(validation_results) * 100)

    @staticmethod
    def _estimate_time_to_earn(failing: int) -> str:
        if failing == 0:
            return "Ready to earn!"
        if failing == 1:
            return "1-2 sessions"
        if failing <= 3:
            return "1-2 weeks"
        return "2-4 weeks"

    @staticmethod
    def _describe(definition: BadgeDefinition, context: EvaluationContext) -> str:
        detected = context.ai_analysis.detected_skills if context.ai_analysis else []
        skills_text = ", ".join(detected) or "programming skills"
        return (
            f"Awarded for demonstrating excellence in {skills_text}. "
            f"This {definition.rarity.value} badge recognizes your achievement in {definition.subcategory}."
        )

    @staticmethod
    def _icon_url(badge_name: str, rarity: RarityLevel) -> str:
        sanitized = "-".join(badge_name.lower().split())
        return f"/badges/{rarity.value}/{sanitized}.svg"

    @staticmethod
    def _difficulty_level(context: EvaluationContext) -> DifficultyTier:
        if context.challenge is not None:
            return context.challenge.difficulty

        max_level = max(context.user_progress.max_skill_level, 1)
        if max_level >= 4:
            return DifficultyTier.EXPERT
        if max_level >= 3:
            return DifficultyTier.ADVANCED
        if max_level >= 2:
            return DifficultyTier.INTERMEDIATE
        return DifficultyTier.BEGINNER
