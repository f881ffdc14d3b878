"""
Badge Catalog

Static badge definitions grouped by the catalog they are evaluated from.
A catalog is built once, either from the built-in definitions or from a YAML
file merged over them, and is read-only afterwards.
"""

import enum
import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import yaml

from skillforge.common.exceptions import ConfigurationError
from skillforge.common.logger import app_logger
from skillforge.gamification.models import (
    BadgeCategory, BadgeCriteria, BadgeDefinition, ContributionType,
    RarityLevel, TimeConstraint, TimeConstraintType
)

# Module logger
logger = app_logger.getChild("gamification.catalog")

PERFECT_SCORE_CONDITION = "perfect_score"


class CatalogGroup(enum.Enum):
    """Catalogs badges are looked up in."""
    SKILL = "skill"
    ACHIEVEMENT = "achievement"
    SPECIAL = "special"
    COMMUNITY = "community"


def _badge(
    name: str,
    category: BadgeCategory,
    subcategory: str,
    rarity: RarityLevel,
    **kwargs: Any
) -> BadgeDefinition:
    criteria = kwargs.pop("criteria", BadgeCriteria())
    return BadgeDefinition(
        name=name,
        category=category,
        subcategory=subcategory,
        criteria=criteria,
        rarity=rarity,
        **kwargs
    )


def _default_definitions() -> Dict[CatalogGroup, Tuple[BadgeDefinition, ...]]:
    skill = BadgeCategory.SKILL
    return {
        CatalogGroup.SKILL: (
            _badge("JavaScript Fundamentals", skill, "javascript", RarityLevel.COMMON,
                   criteria=BadgeCriteria(minimum_skill_level=1, code_quality_threshold=60),
                   skill_area="javascript"),
            _badge("JavaScript Advanced", skill, "javascript", RarityLevel.RARE,
                   criteria=BadgeCriteria(minimum_skill_level=3, code_quality_threshold=80),
                   skill_area="javascript"),
            _badge("JavaScript Master", skill, "javascript", RarityLevel.EPIC,
                   criteria=BadgeCriteria(minimum_skill_level=4, code_quality_threshold=90),
                   skill_area="javascript"),
            _badge("React Hooks Expert", skill, "react", RarityLevel.RARE,
                   criteria=BadgeCriteria(specific_skills=("hooks",), minimum_skill_level=3,
                                          code_quality_threshold=85),
                   skill_area="react"),
            _badge("React Performance Optimizer", skill, "react", RarityLevel.EPIC,
                   criteria=BadgeCriteria(specific_skills=("performance", "optimization"),
                                          minimum_skill_level=4),
                   skill_area="react"),
            _badge("TypeScript Type Safety", skill, "typescript", RarityLevel.UNCOMMON,
                   criteria=BadgeCriteria(specific_skills=("interfaces", "type-guards"),
                                          minimum_skill_level=2),
                   skill_area="typescript"),
            _badge("TypeScript Generics Master", skill, "typescript", RarityLevel.LEGENDARY,
                   criteria=BadgeCriteria(specific_skills=("generics", "advanced-types"),
                                          minimum_skill_level=4),
                   skill_area="typescript"),
            _badge("Algorithm Efficiency", skill, "algorithms", RarityLevel.RARE,
                   criteria=BadgeCriteria(code_quality_threshold=85,
                                          specific_skills=("optimization",)),
                   skill_area="algorithms"),
            _badge("Data Structure Master", skill, "algorithms", RarityLevel.EPIC,
                   criteria=BadgeCriteria(minimum_skill_level=4,
                                          specific_skills=("data-structures",)),
                   skill_area="algorithms"),
        ),
        CatalogGroup.ACHIEVEMENT: (
            _badge("Challenge Conqueror", BadgeCategory.ACHIEVEMENT, "challenges", RarityLevel.UNCOMMON,
                   criteria=BadgeCriteria(challenge_completion=True, required_points=500)),
            _badge("Speed Demon", BadgeCategory.ACHIEVEMENT, "challenges", RarityLevel.RARE,
                   criteria=BadgeCriteria(
                       challenge_completion=True,
                       time_constraints=TimeConstraint(TimeConstraintType.WITHIN_TIMEFRAME, 300)
                   )),
            _badge("Perfect Score", BadgeCategory.ACHIEVEMENT, "challenges", RarityLevel.EPIC,
                   criteria=BadgeCriteria(challenge_completion=True,
                                          special_conditions=(PERFECT_SCORE_CONDITION,))),
            _badge("First Steps", BadgeCategory.MILESTONE, "progression", RarityLevel.COMMON,
                   criteria=BadgeCriteria(minimum_skill_level=1)),
            _badge("Rising Star", BadgeCategory.MILESTONE, "progression", RarityLevel.UNCOMMON,
                   criteria=BadgeCriteria(required_points=1000)),
            _badge("Code Virtuoso", BadgeCategory.MILESTONE, "progression", RarityLevel.LEGENDARY,
                   criteria=BadgeCriteria(required_points=10000, minimum_skill_level=4)),
        ),
        CatalogGroup.SPECIAL: (
            _badge("Early Adopter", BadgeCategory.SPECIAL, "limited_time", RarityLevel.LEGENDARY,
                   limited_edition=True,
                   expiration_date=datetime.datetime(2024, 12, 31)),
            _badge("Beta Tester", BadgeCategory.SPECIAL, "contribution", RarityLevel.EPIC,
                   limited_edition=True),
        ),
        CatalogGroup.COMMUNITY: (
            _badge("Helpful Reviewer", BadgeCategory.COMMUNITY, "peer_review", RarityLevel.UNCOMMON,
                   criteria=BadgeCriteria(peer_review_score=4.0)),
            _badge("Mentor", BadgeCategory.COMMUNITY, "mentorship", RarityLevel.RARE,
                   criteria=BadgeCriteria(peer_review_score=4.5, required_points=2000)),
            _badge("Bug Hunter", BadgeCategory.COMMUNITY, "bug_report", RarityLevel.UNCOMMON),
            _badge("Innovator", BadgeCategory.COMMUNITY, "feature_suggestion", RarityLevel.UNCOMMON),
            _badge("Content Creator", BadgeCategory.COMMUNITY, "content_creation", RarityLevel.RARE),
            _badge("Community Guardian", BadgeCategory.COMMUNITY, "moderation", RarityLevel.RARE),
        ),
    }


class BadgeCatalog:
    """
    Immutable lookup of badge definitions.

    Lookups by name return None for unknown badges; ``require`` raises
    ``ConfigurationError`` instead, for callers that treat a miss as a bug.
    """

    # Catalogs searched when a badge is evaluated by name
    EVALUATION_ORDER = (
        CatalogGroup.SKILL,
        CatalogGroup.ACHIEVEMENT,
        CatalogGroup.SPECIAL,
        CatalogGroup.COMMUNITY
    )

    def __init__(self, definitions: Mapping[CatalogGroup, Iterable[BadgeDefinition]]):
        groups = {}
        for group in CatalogGroup:
            entries = {d.name: d for d in definitions.get(group, ())}
            groups[group] = MappingProxyType(entries)
        self._groups: Mapping[CatalogGroup, Mapping[str, BadgeDefinition]] = MappingProxyType(groups)

    @classmethod
    def default(cls) -> 'BadgeCatalog':
        """Catalog built from the built-in definitions."""
        return cls(_default_definitions())

    @classmethod
    def from_yaml(cls, path: Union[str, Path], merge_defaults: bool = True) -> 'BadgeCatalog':
        """
        Load a catalog from a YAML file.

        The file maps group names to badges keyed by name, e.g.::

            skill:
              Python Fundamentals:
                category: skill
                subcategory: python
                rarity: common
                criteria:
                  minimum_skill_level: 1
                  code_quality_threshold: 60

        Args:
            path: Path to the YAML file
            merge_defaults: Layer file entries over the built-in definitions
                instead of replacing them

        Returns:
            The loaded catalog

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Badge catalog file not found: {path}", "badge_catalog_path")

        try:
            with open(path, "r") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid badge catalog file {path}: {e}", "badge_catalog_path")

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Badge catalog {path} must be a mapping of groups", "badge_catalog_path")

        merged: Dict[CatalogGroup, Dict[str, BadgeDefinition]] = {group: {} for group in CatalogGroup}
        if merge_defaults:
            for group, entries in _default_definitions().items():
                merged[group].update((d.name, d) for d in entries)

        for group_name, badges in raw.items():
            group = _parse_enum(CatalogGroup, group_name, "catalog group")
            for name, data in (badges or {}).items():
                merged[group][name] = _definition_from_dict(name, group, data or {})

        catalog = cls({group: entries.values() for group, entries in merged.items()})
        logger.info(f"Loaded badge catalog from {path} ({len(catalog)} badges)")
        return catalog

    def group(self, group: CatalogGroup) -> Mapping[str, BadgeDefinition]:
        """Read-only view of one catalog group."""
        return self._groups[group]

    def get(self, name: str, groups: Optional[Iterable[CatalogGroup]] = None) -> Optional[BadgeDefinition]:
        """Find a badge by name, searching ``groups`` in order."""
        for group in groups or self.EVALUATION_ORDER:
            definition = self._groups[group].get(name)
            if definition is not None:
                return definition
        return None

    def require(self, group: CatalogGroup, name: str) -> BadgeDefinition:
        """
        Get a badge that must exist in ``group``.

        Raises:
            ConfigurationError: If the badge is not in the group
        """
        definition = self._groups[group].get(name)
        if definition is None:
            raise ConfigurationError(f"{group.value.capitalize()} badge {name} not found", "badge_catalog")
        return definition

    def community_badge_for(self, contribution_type: ContributionType) -> BadgeDefinition:
        """Community badge earned by a contribution kind."""
        return self.require(CatalogGroup.COMMUNITY, contribution_type.badge_name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[BadgeDefinition]:
        for group in self.EVALUATION_ORDER:
            yield from self._groups[group].values()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._groups.values())


def _parse_enum(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError(f"Unknown {what}: {value!r}", "badge_catalog")


def _definition_from_dict(name: str, group: CatalogGroup, data: Dict[str, Any]) -> BadgeDefinition:
    """Build a definition from one YAML entry."""
    criteria_data = dict(data.get("criteria") or {})

    time_constraints = None
    if criteria_data.get("time_constraints"):
        tc = criteria_data["time_constraints"]
        time_constraints = TimeConstraint(
            type=_parse_enum(TimeConstraintType, tc.get("type"), "time constraint type"),
            duration=float(tc.get("duration", 0))
        )

    criteria = BadgeCriteria(
        minimum_skill_level=criteria_data.get("minimum_skill_level"),
        required_points=criteria_data.get("required_points"),
        code_quality_threshold=criteria_data.get("code_quality_threshold"),
        specific_skills=tuple(criteria_data.get("specific_skills") or ()),
        challenge_completion=bool(criteria_data.get("challenge_completion", False)),
        peer_review_score=criteria_data.get("peer_review_score"),
        time_constraints=time_constraints,
        special_conditions=tuple(criteria_data.get("special_conditions") or ())
    )

    expiration = data.get("expiration_date")
    if isinstance(expiration, datetime.date) and not isinstance(expiration, datetime.datetime):
        expiration = datetime.datetime.combine(expiration, datetime.time())
    elif isinstance(expiration, str):
        expiration = datetime.datetime.fromisoformat(expiration)

    return BadgeDefinition(
        name=name,
        category=_parse_enum(BadgeCategory, data.get("category", group.value), "badge category"),
        subcategory=data.get("subcategory", group.value),
        criteria=criteria,
        rarity=_parse_enum(RarityLevel, data.get("rarity", "common"), "rarity"),
        skill_area=data.get("skill_area"),
        limited_edition=bool(data.get("limited_edition", False)),
        expiration_date=expiration
    )
