import datetime
import unittest

import pytest

from skillforge.common.config import EngineConfig, RarityConfig
from skillforge.common.exceptions import ConfigurationError
from skillforge.gamification.badges import BadgeCalculator
from skillforge.gamification.catalog import BadgeCatalog
from skillforge.gamification.models import (
    AIAnalysisResult,
    BadgeCategory,
    BadgeCriteria,
    BadgeDefinition,
    Challenge,
    ChallengeSubmission,
    ContributionType,
    EvaluationContext,
    RarityLevel,
    SkillLevel,
    TimeConstraint,
    TimeConstraintType,
    TimingData,
    UserProgress,
    VerificationStatus,
)
from skillforge.performance.difficulty import DifficultyTier


def _progress(level=2, experience=100, streak_days=0):
    return UserProgress(
        user_id="user-1",
        skill_levels={"javascript": SkillLevel("javascript", "JavaScript", level, experience)},
        streak_days=streak_days,
    )


def _analysis(scores=(85, 75, 80, 90), skills=("javascript", "react")):
    quality, efficiency, creativity, best_practices = scores
    return AIAnalysisResult(
        analysis_id="analysis-1",
        code_quality=quality,
        efficiency=efficiency,
        creativity=creativity,
        best_practices=best_practices,
        detected_skills=list(skills),
    )


def _submission(score=100, passed=True):
    return ChallengeSubmission("sub-1", "challenge-1", "user-1", score, passed)


def _calculator():
    return BadgeCalculator(BadgeCatalog.default(), RarityConfig(), EngineConfig())


class TestBadgeEligibility(unittest.TestCase):
    """Test badge eligibility evaluation."""

    def setUp(self):
        self.calculator = _calculator()

    def test_unknown_badge(self):
        result = self.calculator.evaluate_badge_eligibility(
            "Nonexistent Badge", EvaluationContext("user-1", _progress())
        )

        self.assertFalse(result.is_eligible)
        self.assertIsNone(result.badge_award)
        self.assertEqual(result.missing_criteria, ["Badge not found"])
        self.assertEqual(result.progress_to_next, 0)

    def test_eligible_skill_badge(self):
        context = EvaluationContext("user-1", _progress(), ai_analysis=_analysis())
        result = self.calculator.evaluate_badge_eligibility("JavaScript Fundamentals", context)

        self.assertTrue(result.is_eligible)
        self.assertEqual(result.progress_to_next, 100)
        self.assertEqual(result.missing_criteria, [])

        award = result.badge_award
        self.assertEqual(award.category, BadgeCategory.SKILL)
        self.assertEqual(award.skill_area, "javascript")
        self.assertEqual(award.verification_status, VerificationStatus.PENDING)
        self.assertTrue(award.badge_id.startswith("badge_"))
        self.assertEqual(award.rarity.level, RarityLevel.COMMON)
        self.assertEqual(award.rarity.rarity_score, 10)
        self.assertEqual(award.rarity.estimated_holders, 10000)
        self.assertAlmostEqual(award.rarity.global_percentage, 10.0)
        self.assertEqual(award.icon_url, "/badges/common/javascript-fundamentals.svg")
        self.assertEqual(award.criteria, {"minimum_skill_level": 1, "code_quality_threshold": 60})
        self.assertEqual(award.metadata.code_quality_score, 85)
        self.assertEqual(award.metadata.skills_validated, ["javascript", "react"])
        self.assertEqual(award.metadata.difficulty_level, DifficultyTier.INTERMEDIATE)
        self.assertEqual(
            award.description,
            "Awarded for demonstrating excellence in javascript, react. "
            "This common badge recognizes your achievement in javascript."
        )

    def test_missing_analysis_marks_criterion_unavailable(self):
        result = self.calculator.evaluate_badge_eligibility(
            "JavaScript Fundamentals", EvaluationContext("user-1", _progress())
        )

        self.assertFalse(result.is_eligible)
        self.assertEqual(result.missing_criteria, ["Code Quality Threshold (not available)"])
        self.assertEqual(result.progress_to_next, 50)
        self.assertEqual(result.estimated_time_to_earn, "1-2 sessions")

    def test_progress_counts_passed_criteria(self):
        context = EvaluationContext(
            "user-1", _progress(level=1), ai_analysis=_analysis(skills=("javascript",))
        )
        result = self.calculator.evaluate_badge_eligibility("React Hooks Expert", context)

        # skills fail, level 1 < 3 fails, quality 85 >= 85 passes
        self.assertEqual(
            result.missing_criteria,
            ["Minimum Skill Level", "Specific Skills"]
        )
        self.assertEqual(result.progress_to_next, 33)
        self.assertEqual(result.estimated_time_to_earn, "1-2 weeks")

    def test_speed_demon_time_constraint(self):
        fast = EvaluationContext(
            "user-1", _progress(), submission=_submission(), timing=TimingData(submission_time=200)
        )
        slow = EvaluationContext(
            "user-1", _progress(), submission=_submission(), timing=TimingData(submission_time=400)
        )
        untimed = EvaluationContext("user-1", _progress(), submission=_submission())

        self.assertTrue(self.calculator.evaluate_badge_eligibility("Speed Demon", fast).is_eligible)
        self.assertEqual(
            self.calculator.evaluate_badge_eligibility("Speed Demon", slow).missing_criteria,
            ["Time Constraint"]
        )
        self.assertEqual(
            self.calculator.evaluate_badge_eligibility("Speed Demon", untimed).missing_criteria,
            ["Time Constraint (not available)"]
        )

    def test_perfect_score_condition(self):
        perfect = EvaluationContext("user-1", _progress(), submission=_submission(100))
        near = EvaluationContext("user-1", _progress(), submission=_submission(95))

        self.assertTrue(self.calculator.evaluate_badge_eligibility("Perfect Score", perfect).is_eligible)
        self.assertEqual(
            self.calculator.evaluate_badge_eligibility("Perfect Score", near).missing_criteria,
            ["Special Condition: perfect_score"]
        )

    def test_required_points_use_skill_experience(self):
        rich = UserProgress(
            user_id="user-1",
            skill_levels={
                "javascript": SkillLevel("javascript", current_level=2, experience_points=300),
                "react": SkillLevel("react", current_level=1, experience_points=250),
            },
            total_points=0,
        )
        poor = UserProgress(user_id="user-1", total_points=5000)

        rich_result = self.calculator.evaluate_badge_eligibility(
            "Challenge Conqueror", EvaluationContext("user-1", rich, submission=_submission())
        )
        poor_result = self.calculator.evaluate_badge_eligibility(
            "Challenge Conqueror", EvaluationContext("user-1", poor, submission=_submission())
        )

        self.assertTrue(rich_result.is_eligible)
        self.assertEqual(poor_result.missing_criteria, ["Required Points"])

    def test_expired_badge_is_unavailable(self):
        result = self.calculator.evaluate_badge_eligibility(
            "Early Adopter", EvaluationContext("user-1", _progress())
        )

        self.assertFalse(result.is_eligible)
        self.assertEqual(result.missing_criteria, ["Badge Availability"])

    def test_consecutive_days_falls_back_to_progress_streak(self):
        definition = BadgeDefinition(
            name="Weekly Warrior",
            category=BadgeCategory.ACHIEVEMENT,
            subcategory="streaks",
            criteria=BadgeCriteria(
                time_constraints=TimeConstraint(TimeConstraintType.CONSECUTIVE_DAYS, 7)
            ),
            rarity=RarityLevel.UNCOMMON,
        )

        results = self.calculator.validate_badge_criteria(
            definition.criteria, EvaluationContext("user-1", _progress(streak_days=9))
        )
        self.assertEqual(len(results), 1)
        self.assertTrue(results[0].passed)
        self.assertEqual(results[0].value, 9)

        results = self.calculator.validate_badge_criteria(
            definition.criteria,
            EvaluationContext("user-1", _progress(streak_days=9), timing=TimingData(streak_days=3)),
        )
        self.assertFalse(results[0].passed)

    def test_unknown_special_condition_fails(self):
        criteria = BadgeCriteria(special_conditions=("full_moon",))
        results = self.calculator.validate_badge_criteria(
            criteria, EvaluationContext("user-1", _progress())
        )

        self.assertEqual(results[0].criterion, "Special Condition: full_moon")
        self.assertFalse(results[0].passed)


class TestBadgeRarity(unittest.TestCase):
    """Test rarity scoring."""

    def setUp(self):
        self.calculator = _calculator()
        self.catalog = BadgeCatalog.default()
        self.maximal_context = EvaluationContext(
            "user-1",
            _progress(level=5),
            ai_analysis=_analysis((100, 100, 100, 100)),
            challenge=Challenge("challenge-1", difficulty="expert", time_limit=10),
            peer_review_score=5.0,
            timing=TimingData(submission_time=60),
        )

    def test_score_is_clamped_to_100(self):
        definition = self.catalog.get("TypeScript Generics Master")
        rarity = self.calculator.calculate_badge_rarity(definition, self.maximal_context)

        self.assertEqual(rarity.base_rarity, 95)
        self.assertEqual(rarity.difficulty_bonus, 15)
        self.assertEqual(rarity.quality_bonus, 15)
        self.assertEqual(rarity.time_bonus, 10)
        self.assertEqual(rarity.community_bonus, 10)
        self.assertEqual(rarity.final_rarity, 100)
        self.assertEqual(rarity.rarity_level, RarityLevel.LEGENDARY)

    def test_every_difficulty_bonus(self):
        definition = BadgeDefinition(
            name="Gauntlet",
            category=BadgeCategory.ACHIEVEMENT,
            subcategory="challenges",
            criteria=BadgeCriteria(
                minimum_skill_level=4,
                code_quality_threshold=95,
                specific_skills=("a", "b", "c"),
                time_constraints=TimeConstraint(TimeConstraintType.SINGLE_SESSION, 3600),
            ),
            rarity=RarityLevel.COMMON,
        )
        rarity = self.calculator.calculate_badge_rarity(
            definition, EvaluationContext("user-1", _progress())
        )

        self.assertEqual(rarity.difficulty_bonus, 40)
        self.assertEqual(rarity.final_rarity, 50)
        self.assertEqual(rarity.rarity_level, RarityLevel.UNCOMMON)

    def test_tier_scores(self):
        self.assertEqual(
            [level.base_score for level in RarityLevel], [10, 30, 60, 85, 95]
        )
        for level in RarityLevel:
            self.assertEqual(RarityLevel.from_score(level.base_score), level)
        self.assertEqual(RarityLevel.from_score(29.9), RarityLevel.COMMON)

    def test_every_bonus_on_legendary_base_is_clamped(self):
        definition = BadgeDefinition(
            name="Grand Gauntlet",
            category=BadgeCategory.ACHIEVEMENT,
            subcategory="challenges",
            criteria=BadgeCriteria(
                minimum_skill_level=5,
                code_quality_threshold=95,
                specific_skills=("a", "b", "c"),
                time_constraints=TimeConstraint(TimeConstraintType.SINGLE_SESSION, 3600),
            ),
            rarity=RarityLevel.LEGENDARY,
        )
        rarity = self.calculator.calculate_badge_rarity(definition, self.maximal_context)

        self.assertEqual(rarity.base_rarity, 95)
        self.assertEqual(rarity.difficulty_bonus, 40)
        self.assertEqual(rarity.quality_bonus, 15)
        self.assertEqual(rarity.time_bonus, 10)
        self.assertEqual(rarity.community_bonus, 10)
        self.assertEqual(rarity.final_rarity, 100)
        self.assertEqual(rarity.rarity_level, RarityLevel.LEGENDARY)

    def test_bonuses_can_promote_tier(self):
        definition = self.catalog.get("JavaScript Advanced")
        rarity = self.calculator.calculate_badge_rarity(definition, self.maximal_context)

        # 60 + 15 quality + 10 time + 10 community
        self.assertEqual(rarity.final_rarity, 95)
        self.assertEqual(rarity.rarity_level, RarityLevel.LEGENDARY)

    def test_holder_estimates_follow_final_tier(self):
        calculator = BadgeCalculator(
            BadgeCatalog.default(),
            RarityConfig(
                assumed_population=1000,
                estimated_holders={"common": 500, "uncommon": 200, "rare": 50, "epic": 20, "legendary": 5},
            ),
            EngineConfig(),
        )
        definition = self.catalog.get("JavaScript Advanced")
        award = calculator.create_badge_award("JavaScript Advanced", definition, self.maximal_context)

        self.assertEqual(award.rarity.level, RarityLevel.LEGENDARY)
        self.assertEqual(award.rarity.estimated_holders, 5)
        self.assertAlmostEqual(award.rarity.global_percentage, 0.5)
        self.assertEqual(award.icon_url, "/badges/legendary/javascript-advanced.svg")
        self.assertEqual(award.metadata.difficulty_level, DifficultyTier.EXPERT)


class TestSpecialAndCommunityBadges(unittest.TestCase):
    """Test special and community badge issuance."""

    def setUp(self):
        self.calculator = _calculator()
        self.context = EvaluationContext("user-1", _progress())

    def test_special_badge(self):
        badge = self.calculator.create_special_badge(
            "Beta Tester", self.context, event_id="beta-2024", serial_number=7, total_minted=100
        )

        self.assertEqual(badge.category, BadgeCategory.SPECIAL)
        self.assertEqual(badge.event_id, "beta-2024")
        self.assertEqual(badge.serial_number, 7)
        self.assertEqual(badge.total_minted, 100)
        self.assertTrue(badge.limited_edition)
        self.assertFalse(badge.transferable)
        self.assertEqual(badge.metadata.code_quality_score, None)

    def test_special_badge_keeps_expiration(self):
        badge = self.calculator.create_special_badge("Early Adopter", self.context)
        self.assertEqual(badge.expiration_date, datetime.datetime(2024, 12, 31))

    def test_community_badge(self):
        badge = self.calculator.create_community_badge(
            "Bug Hunter", self.context, ContributionType.BUG_REPORT, 80, endorsements=["ana", "bo"]
        )

        self.assertEqual(badge.category, BadgeCategory.COMMUNITY)
        self.assertEqual(badge.contribution_type, ContributionType.BUG_REPORT)
        self.assertEqual(badge.impact_score, 80)
        self.assertEqual(badge.community_votes, 2)
        self.assertEqual(badge.endorsements, ["ana", "bo"])

    def test_unknown_special_badge_raises(self):
        with self.assertRaises(ConfigurationError):
            self.calculator.create_special_badge("Founder", self.context)

    def test_unknown_community_badge_raises(self):
        with self.assertRaises(ConfigurationError):
            self.calculator.create_community_badge(
                "Founder", self.context, ContributionType.MENTORSHIP, 10
            )

    def test_special_catalog_is_not_searched_for_community(self):
        with self.assertRaises(ConfigurationError):
            self.calculator.create_community_badge(
                "Beta Tester", self.context, ContributionType.MENTORSHIP, 10
            )


NOW = datetime.datetime(2025, 3, 1, 12, 0, 0)


@pytest.fixture
def calculator():
    return _calculator()


def test_achievement_progress_partial(calculator):
    progress = calculator.track_achievement_progress("user-1", "points_1000", 600, 1000, now=NOW)

    assert progress.progress_percentage == 60.0
    assert not progress.is_completed
    assert [m.target_value for m in progress.milestones] == [250, 500, 750, 900, 1000]
    assert [m.is_completed for m in progress.milestones] == [True, True, False, False, False]
    assert progress.milestones[0].completed_at == NOW
    assert progress.milestones[2].completed_at is None
    assert progress.milestones[2].current_value == 600
    # 400 remaining at 10 per day
    assert progress.estimated_completion == NOW + datetime.timedelta(days=40)


def test_achievement_progress_complete(calculator):
    progress = calculator.track_achievement_progress("user-1", "points_1000", 1000, 1000, now=NOW)

    assert progress.is_completed
    assert progress.progress_percentage == 100.0
    assert all(m.is_completed for m in progress.milestones)
    assert progress.estimated_completion is None


def test_achievement_progress_overshoot_is_capped(calculator):
    progress = calculator.track_achievement_progress("user-1", "points_1000", 1250, 1000, now=NOW)

    assert progress.progress_percentage == 100.0
    assert progress.milestones[-1].current_value == 1000


def test_achievement_milestone_rewards(calculator):
    progress = calculator.track_achievement_progress("user-1", "points_1000", 0, 1000, now=NOW)

    assert progress.progress_percentage == 0.0
    assert progress.milestones[0].reward.type == "points"
    assert progress.milestones[0].reward.value == 50
    assert progress.milestones[3].reward.value == 180
    assert progress.milestones[-1].reward.type == "badge"
    assert progress.milestones[-1].reward.value == "points_1000"
    assert progress.milestones[0].milestone_id == "points_1000_milestone_1"


def test_zero_target_counts_as_complete(calculator):
    progress = calculator.track_achievement_progress("user-1", "noop", 0, 0, now=NOW)

    assert progress.progress_percentage == 100.0
    assert progress.is_completed
