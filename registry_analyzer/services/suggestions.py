from collections.abc import Callable
from typing import Any, NamedTuple

from registry_analyzer.core import settings
from registry_analyzer.models.schemas import EntityAnalysis, ImpactLevel, Suggestion, SuggestionType
from registry_analyzer.services.classifier import UNASSIGNED_AREA


DIAGNOSTIC_DOMAINS = ("sensor", "binary_sensor")
DIAGNOSTIC_ENTITY_SUFFIXES = (
    "_battery",
    "_temperature",
    "_temp",
    "_voltage",
    "_signal_strength",
    "_rssi",
    "_linkquality",
    "_last_seen",
    "_update_available",
    "_restart_required",
)
IMPACT_RANK: dict[str, int] = {"high": 3, "medium": 2, "low": 1}


class SuggestionRule(NamedTuple):
    type: SuggestionType
    description: str
    impact: ImpactLevel
    evaluate: Callable[["SuggestionRule", EntityAnalysis], list[Suggestion]]

    def suggest(self, description: str, entities: list[str], **extra: Any) -> Suggestion:
        return Suggestion(type=self.type, description=description, entities=entities, impact=self.impact, **extra)


def is_diagnostic_entity(entity_id: str) -> bool:
    return entity_id.endswith(DIAGNOSTIC_ENTITY_SUFFIXES)


def _hide_diagnostic(rule: SuggestionRule, analysis: EntityAnalysis) -> list[Suggestion]:
    result: list[Suggestion] = []
    for group in analysis.by_domain:
        if group.domain not in DIAGNOSTIC_DOMAINS:
            continue
        matched = [entity_id for entity_id in group.entities if is_diagnostic_entity(entity_id)]
        if not matched:
            continue
        result.append(rule.suggest(f"Hide {len(matched)} diagnostic {group.domain} entities", matched))
    return result


def _review_platform(rule: SuggestionRule, analysis: EntityAnalysis) -> list[Suggestion]:
    threshold = settings.ANALYSIS_PLATFORM_REVIEW_MIN_ENTITIES
    builtin = settings.ANALYSIS_BUILTIN_PLATFORM
    return [
        rule.suggest(
            f"Review {group.platform} platform with {group.count} entities",
            list(group.entities),
            platform=group.platform,
        )
        for group in analysis.by_platform
        if group.count > threshold and group.platform != builtin
    ]


def _organize_areas(rule: SuggestionRule, analysis: EntityAnalysis) -> list[Suggestion]:
    unassigned_count = analysis.summary.unassigned_count
    if unassigned_count <= settings.ANALYSIS_ORGANIZE_AREAS_MIN_UNASSIGNED:
        return []
    unassigned = next((x for x in analysis.by_area if x.area_id == UNASSIGNED_AREA), None)
    return [
        rule.suggest(
            f"Organize {unassigned_count} unassigned entities into areas",
            list(unassigned.entities) if unassigned else [],
        )
    ]


SUGGESTION_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule("hide_diagnostic", "Hide diagnostic sensor entities", "low", _hide_diagnostic),
    SuggestionRule("review_platform", "Review integrations with many entities", "medium", _review_platform),
    SuggestionRule("organize_areas", "Assign areas to unassigned entities", "high", _organize_areas),
)


def list_suggestion_rules(rules: tuple[SuggestionRule, ...] = SUGGESTION_RULES) -> list[dict[str, str]]:
    return [{"type": rule.type, "description": rule.description, "impact": rule.impact} for rule in rules]


def rank_suggestions(suggestions: list[Suggestion]) -> list[Suggestion]:
    # Stable: equal impact keeps rule evaluation order.
    return sorted(suggestions, key=lambda x: IMPACT_RANK[x.impact], reverse=True)


def suggest_cleanup_actions(
    analysis: EntityAnalysis,
    rules: tuple[SuggestionRule, ...] = SUGGESTION_RULES,
) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for rule in rules:
        suggestions.extend(rule.evaluate(rule, analysis))
    return rank_suggestions(suggestions)
