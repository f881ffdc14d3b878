"""
SkillForge Rewards Engine

Deterministic scoring and badge-award engine for a coding-education platform.

The engine features:
1. Challenge difficulty classification and adaptation
2. Itemized points awards for code, challenges, reviews and community work
3. Badge eligibility with computed rarity, and achievement progress
4. An async orchestrator that applies rewards through pluggable stores
"""

__version__ = "0.1.0"
