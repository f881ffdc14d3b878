"""
Reward Orchestration Service

This module sequences one learning event through the engine:
1. Load the learner's progress snapshot
2. Compute the points award
3. Evaluate the badges the event can earn
4. Apply the points, counters and badges, then work out achievements,
   milestones and rank change
5. Hand new badges to the credential ledger

Missing progress fails the event before anything is written. The ledger is
only reached once the award is stored, and its failures only downgrade the
affected badge.
"""

import datetime
from typing import Any, Dict, Iterable, List, Optional

from skillforge.common.config import AppConfig, get_config
from skillforge.common.exceptions import NotFoundError
from skillforge.common.logger import LoggerAdapter, app_logger, configure_logger, log_execution_time
from skillforge.common.utils import clamp
from skillforge.gamification.badges import BadgeCalculator
from skillforge.gamification.catalog import BadgeCatalog, CatalogGroup
from skillforge.gamification.ledger import CredentialLedger
from skillforge.gamification.models import (
    AIAnalysisResult, AchievementProgress, BadgeAward, BadgeDefinition, Challenge,
    ChallengeSubmission, ContributionType, EvaluationContext, ImpactLevel, Milestone,
    PointsCalculation, RankChange, RarityLevel, RewardEvent, RewardResult, StreakType,
    TimingData, UserProgress, VerificationStatus
)
from skillforge.gamification.points import PointsCalculator
from skillforge.gamification.repository import RedisUserProgressStore, UserProgressStore
from skillforge.performance.difficulty import DifficultyTier

# Set up module logger
logger = app_logger.getChild("gamification.service")

# Point totals that unlock an achievement: (achievement id, name, threshold)
POINT_ACHIEVEMENTS = (
    ("rising_star", "Rising Star", 1000),
    ("code_virtuoso", "Code Virtuoso", 10000),
)

CENTURY_CLUB = "Century Club"

RARE_TIERS = (RarityLevel.RARE, RarityLevel.EPIC, RarityLevel.LEGENDARY)


class RewardOrchestrator:
    """
    Service that turns learning events into rewards.

    Calculators are pure; the only I/O is the progress store and the
    credential ledger, both awaited without retries.
    """

    def __init__(
        self,
        store: UserProgressStore,
        ledger: Optional[CredentialLedger] = None,
        points_calculator: Optional[PointsCalculator] = None,
        badge_calculator: Optional[BadgeCalculator] = None,
        config: Optional[AppConfig] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Store holding learner progress
            ledger: Credential ledger, badges stay pending without one
            points_calculator: Points calculator, built from config when omitted
            badge_calculator: Badge calculator, built from config when omitted
            config: Application config, defaults to the loaded one
        """
        self.config = config or get_config()
        self.store = store
        self.ledger = ledger
        self.points = points_calculator or PointsCalculator(self.config.points)
        self.badges = badge_calculator or BadgeCalculator(
            rarity_config=self.config.rarity,
            engine_config=self.config.engine
        )

    @property
    def catalog(self) -> BadgeCatalog:
        return self.badges.catalog

    @log_execution_time(logger)
    async def process_code_analysis(
        self,
        user_id: str,
        analysis: AIAnalysisResult,
        difficulty: DifficultyTier = DifficultyTier.INTERMEDIATE,
        timing: Optional[TimingData] = None,
        enable_verification: Optional[bool] = None
    ) -> RewardResult:
        """
        Reward an analyzed code submission.

        Evaluates every badge in the skill catalog.

        Args:
            user_id: User identifier
            analysis: AI analysis of the submission
            difficulty: Tier the code was written at
            timing: Optional timing data for the session
            enable_verification: Override the configured ledger setting

        Returns:
            Everything the event produced

        Raises:
            NotFoundError: If the learner has no progress record
        """
        log = self._event_logger(user_id, RewardEvent.CODE_ANALYSIS)
        progress = await self._load_progress(user_id)

        points = self.points.calculate_code_submission_points(analysis, difficulty)

        context = EvaluationContext(
            user_id=user_id,
            user_progress=progress,
            ai_analysis=analysis,
            timing=timing
        )
        badges = self._evaluate_badges(self.catalog.group(CatalogGroup.SKILL).values(), context, log)
        result = await self._apply_rewards(user_id, RewardEvent.CODE_ANALYSIS, points, badges, log)
        await self._verify_badges(user_id, badges, analysis.code_quality, enable_verification, log)
        return result

    @log_execution_time(logger)
    async def process_challenge_completion(
        self,
        user_id: str,
        challenge: Challenge,
        submission: ChallengeSubmission,
        completion_time: Optional[float] = None,
        enable_verification: Optional[bool] = None
    ) -> RewardResult:
        """
        Reward a completed challenge.

        Evaluates the achievement badges that require a challenge completion.

        Args:
            user_id: User identifier
            challenge: The completed challenge
            submission: The graded submission
            completion_time: Seconds taken, when known
            enable_verification: Override the configured ledger setting

        Returns:
            Everything the event produced

        Raises:
            NotFoundError: If the learner has no progress record
        """
        log = self._event_logger(user_id, RewardEvent.CHALLENGE_COMPLETION)
        progress = await self._load_progress(user_id)

        points = self.points.calculate_challenge_points(challenge, submission, completion_time)

        context = EvaluationContext(
            user_id=user_id,
            user_progress=progress,
            ai_analysis=submission.ai_analysis,
            challenge=challenge,
            submission=submission,
            timing=TimingData(
                submission_time=completion_time,
                session_duration=completion_time,
                streak_days=progress.streak_days
            )
        )
        candidates = [
            definition for definition in self.catalog.group(CatalogGroup.ACHIEVEMENT).values()
            if definition.criteria.challenge_completion
        ]
        badges = self._evaluate_badges(candidates, context, log)
        log.info(f"Challenge {challenge.challenge_id} completed (passed={submission.passed})")
        result = await self._apply_rewards(
            user_id, RewardEvent.CHALLENGE_COMPLETION, points, badges, log,
            counter="challenges_completed" if submission.passed else None
        )
        await self._verify_badges(user_id, badges, submission.total_score, enable_verification, log)
        return result

    @log_execution_time(logger)
    async def process_peer_review(
        self,
        user_id: str,
        review_quality: float,
        review_length: int,
        helpfulness: float,
        is_first_review: bool = False,
        enable_verification: Optional[bool] = None
    ) -> RewardResult:
        """
        Reward a peer review the learner gave.

        Evaluates the community badges that require a peer-review score,
        using the review's quality rating as that score.

        Raises:
            NotFoundError: If the learner has no progress record
        """
        log = self._event_logger(user_id, RewardEvent.PEER_REVIEW)
        progress = await self._load_progress(user_id)

        points = self.points.calculate_peer_review_points(
            review_quality, review_length, helpfulness, is_first_review
        )

        peer_score = clamp(review_quality, 1, 5)
        context = EvaluationContext(
            user_id=user_id,
            user_progress=progress,
            peer_review_score=peer_score
        )
        candidates = [
            definition for definition in self.catalog.group(CatalogGroup.COMMUNITY).values()
            if definition.criteria.peer_review_score is not None
        ]
        badges = self._evaluate_badges(candidates, context, log)
        result = await self._apply_rewards(
            user_id, RewardEvent.PEER_REVIEW, points, badges, log, counter="peer_reviews_given"
        )
        await self._verify_badges(user_id, badges, peer_score / 5 * 100, enable_verification, log)
        return result

    @log_execution_time(logger)
    async def process_community_contribution(
        self,
        user_id: str,
        contribution_type: ContributionType,
        impact: ImpactLevel,
        community_votes: int = 0,
        is_accepted: bool = False,
        endorsements: Optional[List[str]] = None,
        enable_verification: Optional[bool] = None
    ) -> RewardResult:
        """
        Reward a community contribution.

        Issues the community badge for the contribution kind unless the
        learner already holds it.

        Raises:
            NotFoundError: If the learner has no progress record
            ConfigurationError: If the catalog lacks the contribution's badge
        """
        contribution_type = ContributionType(contribution_type)
        impact = ImpactLevel(impact)
        log = self._event_logger(user_id, RewardEvent.COMMUNITY_CONTRIBUTION)
        progress = await self._load_progress(user_id)

        points = self.points.calculate_community_points(
            contribution_type, impact, community_votes, is_accepted
        )

        context = EvaluationContext(user_id=user_id, user_progress=progress)
        definition = self.catalog.community_badge_for(contribution_type)
        impact_score = self.calculate_impact_score(impact, community_votes, is_accepted)

        badges: List[BadgeAward] = []
        if progress.has_badge(definition.name):
            log.debug(f"Badge {definition.name} already held, skipping")
        else:
            badges.append(self.badges.create_community_badge(
                definition.name, context, contribution_type, impact_score, endorsements
            ))
        result = await self._apply_rewards(user_id, RewardEvent.COMMUNITY_CONTRIBUTION, points, badges, log)
        await self._verify_badges(user_id, badges, impact_score, enable_verification, log)
        return result

    async def process_streak_bonus(
        self,
        user_id: str,
        streak_type: StreakType,
        streak_days: int
    ) -> RewardResult:
        """
        Credit the bonus for an activity streak.

        Raises:
            NotFoundError: If the learner has no progress record
        """
        log = self._event_logger(user_id, RewardEvent.STREAK_BONUS)
        await self._load_progress(user_id)

        points = self.points.calculate_streak_bonus(streak_days, streak_type)
        return await self._apply_rewards(user_id, RewardEvent.STREAK_BONUS, points, [], log)

    async def get_user_gamification_status(self, user_id: str) -> Dict[str, Any]:
        """
        Summarize a learner's standing.

        Args:
            user_id: User identifier

        Returns:
            Dict with points, badge counts, rank, streaks and the progress
            towards point achievements not yet unlocked

        Raises:
            NotFoundError: If the learner has no progress record
        """
        progress = await self._load_progress(user_id)
        rank = await self.store.get_rank(user_id)

        rare_badges = 0
        for name in progress.badges_earned:
            definition = self.catalog.get(name)
            if definition is not None and definition.rarity in RARE_TIERS:
                rare_badges += 1

        completed = [name for _, name, threshold in POINT_ACHIEVEMENTS if progress.total_points >= threshold]
        next_milestones = [
            self.badges.track_achievement_progress(user_id, achievement_id, progress.total_points, threshold)
            for achievement_id, _, threshold in POINT_ACHIEVEMENTS
            if progress.total_points < threshold
        ]

        return {
            "user_id": user_id,
            "total_points": progress.total_points,
            "badge_count": len(progress.badges_earned),
            "rare_badge_count": rare_badges,
            "current_rank": rank,
            "achievements_completed": completed,
            "current_streaks": {StreakType.DAILY_CODING.value: progress.streak_days},
            "challenges_completed": progress.challenges_completed,
            "peer_reviews_given": progress.peer_reviews_given,
            "next_milestones": next_milestones
        }

    @staticmethod
    def calculate_impact_score(impact: ImpactLevel, community_votes: int, is_accepted: bool) -> int:
        """Impact score of a contribution, capped at 100."""
        score = ImpactLevel(impact).base_impact_score + max(0, community_votes) * 2
        if is_accepted:
            score += 25
        return min(100, score)

    def _event_logger(self, user_id: str, event: RewardEvent) -> LoggerAdapter:
        return LoggerAdapter(logger, {"user_id": user_id, "event": event.value})

    async def _load_progress(self, user_id: str) -> UserProgress:
        progress = await self.store.get(user_id)
        if progress is None:
            raise NotFoundError("UserProgress", user_id)
        return progress

    def _evaluate_badges(
        self,
        definitions: Iterable[BadgeDefinition],
        context: EvaluationContext,
        log: LoggerAdapter
    ) -> List[BadgeAward]:
        """Evaluate each definition independently, skipping badges already held."""
        awards = []
        for definition in definitions:
            if context.user_progress.has_badge(definition.name):
                continue
            result = self.badges.evaluate_badge_eligibility(definition.name, context)
            if result.is_eligible and result.badge_award is not None:
                awards.append(result.badge_award)
            else:
                log.debug(f"Not eligible for {definition.name}: {result.missing_criteria}")
        return awards

    async def _verify_badges(
        self,
        user_id: str,
        awards: List[BadgeAward],
        quality_score: float,
        enable_verification: Optional[bool],
        log: LoggerAdapter
    ) -> None:
        """Submit each award to the ledger; a failure only affects its own badge."""
        enabled = enable_verification
        if enabled is None:
            enabled = self.config.engine.enable_credential_verification
        if not enabled or not awards:
            return
        if self.ledger is None:
            log.debug("No credential ledger configured, badges stay pending")
            return

        for award in awards:
            try:
                receipt = await self.ledger.verify(user_id, award, quality_score)
            except Exception as e:
                log.error(f"Credential verification failed for {award.badge_name}: {e}")
                award.mark_unverified()
                continue

            if receipt.status == VerificationStatus.VERIFIED and receipt.transaction_ref:
                award.mark_verified(receipt.transaction_ref)
            else:
                log.warning(f"Ledger did not verify {award.badge_name} ({receipt.status.value})")
                award.mark_unverified()

    async def _apply_rewards(
        self,
        user_id: str,
        event: RewardEvent,
        points: PointsCalculation,
        badges: List[BadgeAward],
        log: LoggerAdapter,
        counter: Optional[str] = None
    ) -> RewardResult:
        previous_rank = await self.store.get_rank(user_id)
        new_total = await self.store.increment_points(user_id, points.total_points)
        if counter is not None:
            await self.store.increment_counter(user_id, counter)
        if badges:
            await self.store.add_badges(user_id, [badge.badge_name for badge in badges])

        now = datetime.datetime.now()
        previous_total = new_total - points.total_points
        achievements = self._check_achievements(user_id, previous_total, new_total, now)
        milestones = self._check_milestones(points.total_points, now)

        new_rank = await self.store.get_rank(user_id)
        rank_change = None
        if previous_rank is not None and new_rank is not None:
            rank_change = RankChange(previous_rank=previous_rank, new_rank=new_rank)

        log.info(
            f"Awarded {points.total_points} points and {len(badges)} badges "
            f"(total {new_total})"
        )

        return RewardResult(
            user_id=user_id,
            event=event,
            points_earned=points,
            badges_awarded=badges,
            achievements_unlocked=achievements,
            new_milestones=milestones,
            total_points=new_total,
            rank_change=rank_change,
            processed_at=now
        )

    def _check_achievements(
        self,
        user_id: str,
        previous_total: int,
        new_total: int,
        now: datetime.datetime
    ) -> List[AchievementProgress]:
        """Point achievements whose threshold this award crossed."""
        return [
            self.badges.track_achievement_progress(user_id, achievement_id, new_total, threshold, now=now)
            for achievement_id, _, threshold in POINT_ACHIEVEMENTS
            if previous_total < threshold <= new_total
        ]

    def _check_milestones(self, points_earned: int, now: datetime.datetime) -> List[Milestone]:
        threshold = self.config.engine.century_club_threshold
        if points_earned < threshold:
            return []
        return [Milestone(
            milestone_id="century_club",
            name=CENTURY_CLUB,
            description=f"Earn {threshold} or more points in a single activity",
            target_value=threshold,
            current_value=points_earned,
            is_completed=True,
            completed_at=now
        )]


# Singleton instance
_reward_orchestrator: Optional[RewardOrchestrator] = None


def get_reward_orchestrator() -> RewardOrchestrator:
    """
    Get the singleton reward orchestrator.

    Uses the Redis progress store and the configured badge catalog.

    Returns:
        Reward orchestrator instance
    """
    global _reward_orchestrator

    if _reward_orchestrator is None:
        config = get_config()
        catalog_path = config.engine.badge_catalog_path
        catalog = BadgeCatalog.from_yaml(catalog_path) if catalog_path else BadgeCatalog.default()
        _reward_orchestrator = RewardOrchestrator(
            store=RedisUserProgressStore(),
            badge_calculator=BadgeCalculator(catalog, config.rarity, config.engine),
            config=config
        )

    return _reward_orchestrator


def initialize_reward_engine(ledger: Optional[CredentialLedger] = None) -> RewardOrchestrator:
    """
    Configure logging from the loaded config and build the orchestrator.

    Args:
        ledger: Credential ledger to attach to the orchestrator

    Returns:
        The singleton orchestrator
    """
    config = get_config()
    configure_logger(
        level=config.logging.level,
        use_json=config.logging.use_json,
        log_file=config.logging.file_path
    )

    orchestrator = get_reward_orchestrator()
    if ledger is not None:
        orchestrator.ledger = ledger
    logger.info(f"Reward engine initialized with {len(orchestrator.catalog)} badges")
    return orchestrator
