import datetime

import pytest

from skillforge.common.exceptions import ConfigurationError
from skillforge.gamification.catalog import BadgeCatalog, CatalogGroup
from skillforge.gamification.models import (
    BadgeCategory,
    ContributionType,
    RarityLevel,
    TimeConstraintType,
)


def test_default_catalog_groups():
    catalog = BadgeCatalog.default()

    assert len(catalog.group(CatalogGroup.SKILL)) == 9
    assert set(catalog.group(CatalogGroup.ACHIEVEMENT)) == {
        "Challenge Conqueror", "Speed Demon", "Perfect Score",
        "First Steps", "Rising Star", "Code Virtuoso",
    }
    assert set(catalog.group(CatalogGroup.SPECIAL)) == {"Early Adopter", "Beta Tester"}
    assert "Helpful Reviewer" in catalog
    assert "Nonexistent" not in catalog
    assert len(catalog) == len(list(catalog))


def test_lookup_by_group_and_contribution():
    catalog = BadgeCatalog.default()

    assert catalog.get("Mentor", [CatalogGroup.SKILL]) is None
    assert catalog.get("Mentor").rarity == RarityLevel.RARE
    assert catalog.community_badge_for(ContributionType.MODERATION).name == "Community Guardian"
    assert catalog.get("Speed Demon").criteria.time_constraints.type == TimeConstraintType.WITHIN_TIMEFRAME

    with pytest.raises(ConfigurationError):
        catalog.require(CatalogGroup.SPECIAL, "Mentor")


def test_catalog_is_read_only():
    catalog = BadgeCatalog.default()
    skills = catalog.group(CatalogGroup.SKILL)

    with pytest.raises(TypeError):
        skills["Hacked"] = skills["JavaScript Fundamentals"]

    with pytest.raises(AttributeError):
        skills["JavaScript Fundamentals"].rarity = RarityLevel.LEGENDARY


def test_yaml_catalog_merges_over_defaults(tmp_path):
    path = tmp_path / "badges.yaml"
    path.write_text(
        "skill:\n"
        "  Python Fundamentals:\n"
        "    subcategory: python\n"
        "    rarity: common\n"
        "    skill_area: python\n"
        "    criteria:\n"
        "      minimum_skill_level: 1\n"
        "      code_quality_threshold: 60\n"
        "community:\n"
        "  Bug Hunter:\n"
        "    subcategory: bug_report\n"
        "    rarity: epic\n"
        "special:\n"
        "  Hackathon 2030:\n"
        "    subcategory: limited_time\n"
        "    rarity: legendary\n"
        "    limited_edition: true\n"
        "    expiration_date: 2030-06-30\n"
        "achievement:\n"
        "  Marathon:\n"
        "    criteria:\n"
        "      time_constraints:\n"
        "        type: consecutive_days\n"
        "        duration: 30\n"
    )

    catalog = BadgeCatalog.from_yaml(path)

    python = catalog.get("Python Fundamentals")
    assert python.category == BadgeCategory.SKILL
    assert python.criteria.code_quality_threshold == 60
    assert python.skill_area == "python"
    assert catalog.get("Bug Hunter").rarity == RarityLevel.EPIC
    assert catalog.get("JavaScript Fundamentals") is not None

    hackathon = catalog.get("Hackathon 2030")
    assert hackathon.limited_edition
    assert hackathon.expiration_date == datetime.datetime(2030, 6, 30)

    marathon = catalog.get("Marathon")
    assert marathon.category == BadgeCategory.ACHIEVEMENT
    assert marathon.criteria.time_constraints.type == TimeConstraintType.CONSECUTIVE_DAYS
    assert marathon.criteria.time_constraints.duration == 30.0


def test_yaml_catalog_without_defaults(tmp_path):
    path = tmp_path / "badges.yaml"
    path.write_text("community:\n  Helpful Reviewer:\n    criteria:\n      peer_review_score: 3.5\n")

    catalog = BadgeCatalog.from_yaml(path, merge_defaults=False)

    assert len(catalog) == 1
    assert catalog.get("Helpful Reviewer").criteria.peer_review_score == 3.5


@pytest.mark.parametrize("content", [
    "skill: [unclosed",
    "- just\n- a list\n",
    "galaxy:\n  Star:\n    rarity: common\n",
    "skill:\n  Star:\n    rarity: mythic\n",
])
def test_malformed_yaml_catalog(tmp_path, content):
    path = tmp_path / "badges.yaml"
    path.write_text(content)

    with pytest.raises(ConfigurationError):
        BadgeCatalog.from_yaml(path)


def test_missing_yaml_catalog(tmp_path):
    with pytest.raises(ConfigurationError):
        BadgeCatalog.from_yaml(tmp_path / "missing.yaml")
