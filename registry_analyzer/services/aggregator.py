from collections.abc import Callable
from typing import TypeVar

from registry_analyzer.models.schemas import (
    AnalysisSummary,
    AreaGroup,
    DomainGroup,
    EntityAnalysis,
    PlatformGroup,
    ProblemEntities,
    RegistryEntity,
)
from registry_analyzer.services.classifier import UNASSIGNED_AREA, EntityClassification
from registry_analyzer.services.registry_index import RegistryIndex


UNASSIGNED_AREA_LABEL = "Unassigned"
UNKNOWN_AREA_LABEL = "Unknown"

GroupT = TypeVar("GroupT", PlatformGroup, DomainGroup, AreaGroup)


def _entity_ids(entities: list[RegistryEntity]) -> list[str]:
    return [entity.entity_id for entity in entities]


def sort_by_count(groups: list[GroupT]) -> list[GroupT]:
    # sorted() is stable: equal counts keep first-seen key order.
    return sorted(groups, key=lambda group: group.count, reverse=True)


def area_display_name(area_id: str, index: RegistryIndex) -> str:
    if area_id == UNASSIGNED_AREA:
        return UNASSIGNED_AREA_LABEL
    area = index.area(area_id)
    if area is None or not area.name:
        return UNKNOWN_AREA_LABEL
    return area.name


def _build_sections(
    grouping: dict[str, list[RegistryEntity]],
    factory: Callable[[str, list[str]], GroupT],
) -> list[GroupT]:
    return sort_by_count([factory(key, _entity_ids(members)) for key, members in grouping.items()])


def aggregate_classification(
    classification: EntityClassification,
    index: RegistryIndex,
    *,
    total_entities: int,
    total_devices: int,
    total_areas: int,
) -> EntityAnalysis:
    by_platform = _build_sections(
        classification.by_platform,
        lambda key, ids: PlatformGroup(platform=key, count=len(ids), entities=ids),
    )
    by_domain = _build_sections(
        classification.by_domain,
        lambda key, ids: DomainGroup(domain=key, count=len(ids), entities=ids),
    )
    by_area = _build_sections(
        classification.by_area,
        lambda key, ids: AreaGroup(
            area_id=key,
            area_name=area_display_name(key, index),
            count=len(ids),
            entities=ids,
        ),
    )

    summary = AnalysisSummary(
        total_entities=total_entities,
        total_devices=total_devices,
        total_areas=total_areas,
        hidden_count=len(classification.hidden),
        disabled_count=len(classification.disabled),
        orphaned_count=len(classification.orphaned),
        unused_count=len(classification.unused),
        unassigned_count=len(classification.by_area.get(UNASSIGNED_AREA, [])),
    )

    return EntityAnalysis(
        summary=summary,
        by_platform=by_platform,
        by_domain=by_domain,
        by_area=by_area,
        problem_entities=ProblemEntities(
            hidden=_entity_ids(classification.hidden),
            disabled=_entity_ids(classification.disabled),
            orphaned=_entity_ids(classification.orphaned),
            unused=_entity_ids(classification.unused),
        ),
    )
