"""
Gamification Package

This package provides the rewards features of the engine:
- Points calculation with itemized breakdowns
- Badge catalogs, eligibility, rarity and awards
- Achievement progress and milestones
- Reward orchestration over a progress store and a credential ledger
"""

from skillforge.gamification.catalog import BadgeCatalog, CatalogGroup
from skillforge.gamification.points import PointsCalculator
from skillforge.gamification.badges import BadgeCalculator
from skillforge.gamification.ledger import CredentialLedger, LedgerReceipt, MemoryCredentialLedger
from skillforge.gamification.repository import (
    UserProgressStore, MemoryUserProgressStore, RedisUserProgressStore
)
from skillforge.gamification.service import (
    RewardOrchestrator, get_reward_orchestrator, initialize_reward_engine
)
