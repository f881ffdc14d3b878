"""
Gamification System Models

This module defines the data models for the rewards engine including:
1. Learner progress and the inputs an evaluation reads
2. Badge definitions, criteria, awards and rarity tiers
3. Points calculations with their itemized breakdowns
4. Achievement progress and milestones

Engine results are plain records; nothing here talks to storage.
"""

import enum
import uuid
import datetime
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

from skillforge.common.serialization import SerializableMixin, parse_datetime
from skillforge.performance.difficulty import DifficultyTier


class RarityLevel(enum.Enum):
    """Rarity tiers for badges."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @classmethod
    def from_score(cls, score: float) -> 'RarityLevel':
        """Map a 0-100 rarity score onto a tier."""
        if score >= 95:
            return cls.LEGENDARY
        if score >= 85:
            return cls.EPIC
        if score >= 60:
            return cls.RARE
        if score >= 30:
            return cls.UNCOMMON
        return cls.COMMON

    @property
    def base_score(self) -> int:
        """Starting rarity score for a badge defined at this tier."""
        return {
            RarityLevel.COMMON: 10,
            RarityLevel.UNCOMMON: 30,
            RarityLevel.RARE: 60,
            RarityLevel.EPIC: 85,
            RarityLevel.LEGENDARY: 95
        }[self]


class BadgeCategory(enum.Enum):
    """Catalog groups badges are defined in."""
    SKILL = "skill"
    ACHIEVEMENT = "achievement"
    MILESTONE = "milestone"
    SPECIAL = "special"
    COMMUNITY = "community"


class VerificationStatus(enum.Enum):
    """Credential verification state of an award."""
    PENDING = "pending"
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class TimeConstraintType(enum.Enum):
    """How a badge's time constraint is measured."""
    WITHIN_TIMEFRAME = "within_timeframe"
    CONSECUTIVE_DAYS = "consecutive_days"
    SINGLE_SESSION = "single_session"


class ContributionType(enum.Enum):
    """Kinds of community contribution that earn points and badges."""
    BUG_REPORT = "bug_report"
    FEATURE_SUGGESTION = "feature_suggestion"
    CONTENT_CREATION = "content_creation"
    MENTORSHIP = "mentorship"
    MODERATION = "moderation"

    @property
    def base_points(self) -> int:
        """Points a contribution of this kind starts from."""
        return {
            ContributionType.BUG_REPORT: 30,
            ContributionType.FEATURE_SUGGESTION: 25,
            ContributionType.CONTENT_CREATION: 40,
            ContributionType.MENTORSHIP: 50,
            ContributionType.MODERATION: 35
        }[self]

    @property
    def badge_name(self) -> str:
        """Name of the community badge this contribution earns."""
        return {
            ContributionType.BUG_REPORT: "Bug Hunter",
            ContributionType.FEATURE_SUGGESTION: "Innovator",
            ContributionType.CONTENT_CREATION: "Content Creator",
            ContributionType.MENTORSHIP: "Mentor",
            ContributionType.MODERATION: "Community Guardian"
        }[self]


class ImpactLevel(enum.Enum):
    """Assessed impact of a community contribution."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def multiplier(self) -> float:
        return {
            ImpactLevel.LOW: 1.0,
            ImpactLevel.MEDIUM: 1.5,
            ImpactLevel.HIGH: 2.0
        }[self]

    @property
    def base_impact_score(self) -> int:
        return {
            ImpactLevel.LOW: 25,
            ImpactLevel.MEDIUM: 50,
            ImpactLevel.HIGH: 75
        }[self]


class StreakType(enum.Enum):
    """Activities a streak can be counted over."""
    DAILY_CODING = "daily_coding"
    CHALLENGE_COMPLETION = "challenge_completion"
    PEER_REVIEW = "peer_review"


class RewardEvent(enum.Enum):
    """Learning events the orchestrator handles."""
    CODE_ANALYSIS = "code_analysis"
    CHALLENGE_COMPLETION = "challenge_completion"
    PEER_REVIEW = "peer_review"
    COMMUNITY_CONTRIBUTION = "community_contribution"
    STREAK_BONUS = "streak_bonus"


class RankDirection(enum.Enum):
    """Direction of a leaderboard move."""
    UP = "up"
    DOWN = "down"
    SAME = "same"


@dataclass
class SkillLevel(SerializableMixin):
    """A learner's standing in one skill."""

    __serializable_fields__ = ["skill_id", "skill_name", "current_level", "experience_points"]
    __optional_fields__ = ["skill_name", "current_level", "experience_points"]

    skill_id: str
    skill_name: str = ""
    current_level: int = 1
    experience_points: int = 0


@dataclass
class UserProgress(SerializableMixin):
    """
    Snapshot of a learner's standing.

    The engine reads this; only the progress store writes it.
    """

    __serializable_fields__ = [
        "user_id", "skill_levels", "total_points", "challenges_completed",
        "peer_reviews_given", "badges_earned", "streak_days", "updated_at"
    ]
    __optional_fields__ = [
        "skill_levels", "total_points", "challenges_completed",
        "peer_reviews_given", "badges_earned", "streak_days", "updated_at"
    ]

    user_id: str
    skill_levels: Dict[str, SkillLevel] = field(default_factory=dict)
    total_points: int = 0
    challenges_completed: int = 0
    peer_reviews_given: int = 0
    badges_earned: List[str] = field(default_factory=list)
    streak_days: int = 0
    updated_at: datetime.datetime = field(default_factory=datetime.datetime.now)

    @property
    def max_skill_level(self) -> int:
        """Highest level across all skills, 0 without skills."""
        if not self.skill_levels:
            return 0
        return max(skill.current_level for skill in self.skill_levels.values())

    def has_badge(self, badge_name: str) -> bool:
        return badge_name in self.badges_earned

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProgress':
        """Create an instance from a dictionary, rebuilding nested skills."""
        data = dict(data)
        skills = data.get("skill_levels") or {}
        data["skill_levels"] = {
            skill_id: skill if isinstance(skill, SkillLevel) else SkillLevel.from_dict(skill)
            for skill_id, skill in skills.items()
        }
        if "updated_at" in data:
            data["updated_at"] = parse_datetime(data["updated_at"])
        return super().from_dict(data)


@dataclass
class AIAnalysisResult(SerializableMixin):
    """Quality scores an automated analyzer produced for a code submission."""

    __serializable_fields__ = [
        "analysis_id", "code_quality", "efficiency", "creativity", "best_practices",
        "suggestions", "detected_skills", "improvement_areas"
    ]
    __optional_fields__ = ["suggestions", "detected_skills", "improvement_areas"]

    analysis_id: str
    code_quality: float
    efficiency: float
    creativity: float
    best_practices: float
    suggestions: List[str] = field(default_factory=list)
    detected_skills: List[str] = field(default_factory=list)
    improvement_areas: List[str] = field(default_factory=list)

    @property
    def average_score(self) -> float:
        """Mean of the four sub-scores."""
        return (self.code_quality + self.efficiency + self.creativity + self.best_practices) / 4


@dataclass
class Challenge(SerializableMixin):
    """A coding challenge. ``time_limit`` is in minutes."""

    __serializable_fields__ = ["challenge_id", "title", "difficulty", "skills_targeted", "time_limit"]
    __optional_fields__ = ["title", "skills_targeted", "time_limit"]

    challenge_id: str
    title: str = ""
    difficulty: DifficultyTier = DifficultyTier.BEGINNER
    skills_targeted: List[str] = field(default_factory=list)
    time_limit: Optional[int] = None

    def __post_init__(self):
        """Initialize after creation."""
        self.difficulty = DifficultyTier.coerce(self.difficulty)


@dataclass
class ChallengeSubmission(SerializableMixin):
    """A learner's graded attempt at a challenge."""

    __serializable_fields__ = [
        "submission_id", "challenge_id", "user_id", "total_score", "passed", "ai_analysis"
    ]
    __optional_fields__ = ["passed", "ai_analysis"]

    submission_id: str
    challenge_id: str
    user_id: str
    total_score: float
    passed: bool = True
    ai_analysis: Optional[AIAnalysisResult] = None


@dataclass(frozen=True)
class TimingData:
    """Timing facts about the activity being evaluated, in seconds and days."""
    submission_time: Optional[float] = None
    session_duration: Optional[float] = None
    streak_days: Optional[int] = None


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a badge evaluation reads."""
    user_id: str
    user_progress: UserProgress
    ai_analysis: Optional[AIAnalysisResult] = None
    challenge: Optional[Challenge] = None
    submission: Optional[ChallengeSubmission] = None
    peer_review_score: Optional[float] = None
    timing: Optional[TimingData] = None


@dataclass(frozen=True)
class TimeConstraint:
    """Time window a badge must be earned within."""
    type: TimeConstraintType
    duration: float
    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class BadgeCriteria:
    """
    Conditions a badge requires.

    Every criterion is optional; ``challenge_completion`` only counts when True.
    """
    minimum_skill_level: Optional[int] = None
    required_points: Optional[int] = None
    code_quality_threshold: Optional[float] = None
    specific_skills: Tuple[str, ...] = ()
    challenge_completion: bool = False
    peer_review_score: Optional[float] = None
    time_constraints: Optional[TimeConstraint] = None
    special_conditions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, keeping only the criteria that are set."""
        result: Dict[str, Any] = {}
        if self.minimum_skill_level is not None:
            result["minimum_skill_level"] = self.minimum_skill_level
        if self.required_points is not None:
            result["required_points"] = self.required_points
        if self.code_quality_threshold is not None:
            result["code_quality_threshold"] = self.code_quality_threshold
        if self.specific_skills:
            result["specific_skills"] = list(self.specific_skills)
        if self.challenge_completion:
            result["challenge_completion"] = True
        if self.peer_review_score is not None:
            result["peer_review_score"] = self.peer_review_score
        if self.time_constraints is not None:
            result["time_constraints"] = {
                "type": self.time_constraints.type.value,
                "duration": self.time_constraints.duration
            }
        if self.special_conditions:
            result["special_conditions"] = list(self.special_conditions)
        return result


@dataclass(frozen=True)
class BadgeDefinition:
    """A catalog entry describing a badge and how it is earned."""
    name: str
    category: BadgeCategory
    subcategory: str
    criteria: BadgeCriteria
    rarity: RarityLevel
    skill_area: Optional[str] = None
    limited_edition: bool = False
    expiration_date: Optional[datetime.datetime] = None

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if self.expiration_date is None:
            return False
        return (now or datetime.datetime.now()) > self.expiration_date


@dataclass
class ValidationCriterion(SerializableMixin):
    """Outcome of checking one badge criterion."""

    __serializable_fields__ = ["criterion", "value", "passed", "threshold"]
    __optional_fields__ = ["threshold"]

    criterion: str
    value: Any
    passed: bool
    threshold: Any = None


@dataclass
class RarityCalculation(SerializableMixin):
    """Itemized rarity score for one award."""

    __serializable_fields__ = [
        "base_rarity", "difficulty_bonus", "quality_bonus", "time_bonus",
        "community_bonus", "final_rarity", "rarity_level"
    ]

    base_rarity: int
    difficulty_bonus: int
    quality_bonus: int
    time_bonus: int
    community_bonus: int
    final_rarity: int
    rarity_level: RarityLevel


@dataclass
class BadgeRarity(SerializableMixin):
    """Rarity attached to an issued badge."""

    __serializable_fields__ = ["level", "rarity_score", "estimated_holders", "global_percentage"]

    level: RarityLevel
    rarity_score: int
    estimated_holders: int
    global_percentage: float


@dataclass
class BadgeMetadata(SerializableMixin):
    """Evidence recorded with an award."""

    __serializable_fields__ = [
        "skills_validated", "code_quality_score", "difficulty_level", "validation_criteria"
    ]

    skills_validated: List[str] = field(default_factory=list)
    code_quality_score: Optional[float] = None
    difficulty_level: DifficultyTier = DifficultyTier.BEGINNER
    validation_criteria: List[ValidationCriterion] = field(default_factory=list)


@dataclass
class BadgeAward(SerializableMixin):
    """
    A badge issued to a learner.

    Awards start out ``pending``; the orchestrator settles them to
    ``verified`` or ``unverified`` after the credential ledger call.
    """

    __serializable_fields__ = [
        "badge_id", "badge_name", "category", "subcategory", "rarity", "description",
        "icon_url", "criteria", "metadata", "awarded_at", "verification_status",
        "transaction_ref", "skill_area"
    ]

    badge_name: str
    category: BadgeCategory
    subcategory: str
    rarity: BadgeRarity
    description: str = ""
    icon_url: str = ""
    criteria: Dict[str, Any] = field(default_factory=dict)
    metadata: BadgeMetadata = field(default_factory=BadgeMetadata)
    badge_id: str = ""
    awarded_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    verification_status: VerificationStatus = VerificationStatus.PENDING
    transaction_ref: Optional[str] = None
    skill_area: Optional[str] = None

    def __post_init__(self):
        """Initialize after creation."""
        if not self.badge_id:
            self.badge_id = f"badge_{uuid.uuid4().hex}"

        if isinstance(self.category, str):
            self.category = BadgeCategory(self.category)

        if isinstance(self.verification_status, str):
            self.verification_status = VerificationStatus(self.verification_status)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    def mark_verified(self, transaction_ref: str) -> None:
        self.verification_status = VerificationStatus.VERIFIED
        self.transaction_ref = transaction_ref

    def mark_unverified(self) -> None:
        self.verification_status = VerificationStatus.UNVERIFIED
        self.transaction_ref = None


@dataclass
class SpecialBadge(BadgeAward):
    """A limited-edition award tied to an event."""

    __serializable_fields__ = BadgeAward.__serializable_fields__ + [
        "event_id", "limited_edition", "serial_number", "total_minted",
        "expiration_date", "transferable"
    ]

    event_id: str = ""
    limited_edition: bool = True
    serial_number: Optional[int] = None
    total_minted: Optional[int] = None
    expiration_date: Optional[datetime.datetime] = None
    transferable: bool = False


@dataclass
class CommunityBadge(BadgeAward):
    """An award for a community contribution."""

    __serializable_fields__ = BadgeAward.__serializable_fields__ + [
        "contribution_type", "impact_score", "community_votes", "endorsements"
    ]

    contribution_type: Optional[ContributionType] = None
    impact_score: int = 0
    community_votes: int = 0
    endorsements: List[str] = field(default_factory=list)


@dataclass
class BadgeEligibilityResult(SerializableMixin):
    """
    Verdict of evaluating one named badge.

    ``missing_criteria`` names every failed criterion; ``validation_results``
    keeps the full list, passed and failed, for progress displays.
    """

    __serializable_fields__ = [
        "badge_name", "is_eligible", "badge_award", "missing_criteria",
        "progress_to_next", "estimated_time_to_earn", "validation_results"
    ]

    badge_name: str
    is_eligible: bool
    badge_award: Optional[BadgeAward] = None
    missing_criteria: List[str] = field(default_factory=list)
    progress_to_next: int = 0
    estimated_time_to_earn: Optional[str] = None
    validation_results: List[ValidationCriterion] = field(default_factory=list)


@dataclass
class PointsBreakdown(SerializableMixin):
    """One itemized line of a points calculation."""

    __serializable_fields__ = ["category", "points", "description", "multiplier"]
    __optional_fields__ = ["multiplier"]

    category: str
    points: int
    description: str
    multiplier: Optional[float] = None


@dataclass
class PointsCalculation(SerializableMixin):
    """
    Points awarded for one activity.

    ``total_points`` always equals the sum of the breakdown lines.
    """

    __serializable_fields__ = [
        "base_points", "quality_bonus", "efficiency_bonus", "creativity_bonus",
        "best_practices_bonus", "difficulty_multiplier", "total_points", "breakdown"
    ]

    base_points: int = 0
    quality_bonus: int = 0
    efficiency_bonus: int = 0
    creativity_bonus: int = 0
    best_practices_bonus: int = 0
    difficulty_multiplier: float = 1.0
    total_points: int = 0
    breakdown: List[PointsBreakdown] = field(default_factory=list)

    @property
    def breakdown_total(self) -> int:
        return sum(line.points for line in self.breakdown)


@dataclass
class MilestoneReward(SerializableMixin):
    """What a milestone grants once reached."""

    __serializable_fields__ = ["type", "value", "description"]

    type: str
    value: Any
    description: str


@dataclass
class Milestone(SerializableMixin):
    """A progress marker on the way to an achievement."""

    __serializable_fields__ = [
        "milestone_id", "name", "description", "target_value", "current_value",
        "is_completed", "completed_at", "reward"
    ]

    milestone_id: str
    name: str
    description: str
    target_value: int
    current_value: float
    is_completed: bool
    completed_at: Optional[datetime.datetime] = None
    reward: Optional[MilestoneReward] = None


@dataclass
class AchievementProgress(SerializableMixin):
    """A learner's progress towards one achievement."""

    __serializable_fields__ = [
        "achievement_id", "user_id", "current_progress", "target_progress",
        "progress_percentage", "milestones", "is_completed", "estimated_completion",
        "last_updated"
    ]

    achievement_id: str
    user_id: str
    current_progress: float
    target_progress: float
    progress_percentage: float
    milestones: List[Milestone] = field(default_factory=list)
    is_completed: bool = False
    estimated_completion: Optional[datetime.datetime] = None
    last_updated: datetime.datetime = field(default_factory=datetime.datetime.now)


@dataclass
class RankChange(SerializableMixin):
    """Leaderboard move caused by one event."""

    __serializable_fields__ = ["previous_rank", "new_rank", "direction"]

    previous_rank: int
    new_rank: int

    @property
    def direction(self) -> RankDirection:
        if self.new_rank < self.previous_rank:
            return RankDirection.UP
        if self.new_rank > self.previous_rank:
            return RankDirection.DOWN
        return RankDirection.SAME


@dataclass
class RewardResult(SerializableMixin):
    """
    Everything one learning event produced.

    ``total_points`` is the learner's running total after the event.
    """

    __serializable_fields__ = [
        "user_id", "event", "points_earned", "badges_awarded", "achievements_unlocked",
        "new_milestones", "total_points", "rank_change", "processed_at"
    ]

    user_id: str
    event: RewardEvent
    points_earned: PointsCalculation
    badges_awarded: List[BadgeAward] = field(default_factory=list)
    achievements_unlocked: List[AchievementProgress] = field(default_factory=list)
    new_milestones: List[Milestone] = field(default_factory=list)
    total_points: int = 0
    rank_change: Optional[RankChange] = None
    processed_at: datetime.datetime = field(default_factory=datetime.datetime.now)
