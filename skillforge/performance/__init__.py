"""
Challenge Difficulty

Classification of challenge difficulty, learner readiness checks and
performance-driven difficulty adaptation.
"""

from skillforge.performance.difficulty import (
    DifficultyTier,
    TimeComplexity,
    DifficultyMetrics,
    DifficultyClassification,
    ReadinessAssessment,
    DifficultyAdjustment,
    DifficultyClassifier
)
