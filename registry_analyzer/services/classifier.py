from collections.abc import Iterable

from pydantic import BaseModel, Field

from registry_analyzer.models.schemas import RegistryEntity
from registry_analyzer.services.registry_index import RegistryIndex


UNASSIGNED_AREA = "unassigned"
UNKNOWN_PLATFORM = "unknown"
DOMAIN_SEPARATOR = "."


class EntityClassification(BaseModel):
    """Groupings and flag lists produced by a single pass over the entities.

    Groupings are insertion ordered: keys in first-seen order, members in
    fetch order.
    """

    by_platform: dict[str, list[RegistryEntity]] = Field(default_factory=dict)
    by_domain: dict[str, list[RegistryEntity]] = Field(default_factory=dict)
    by_area: dict[str, list[RegistryEntity]] = Field(default_factory=lambda: {UNASSIGNED_AREA: []})
    hidden: list[RegistryEntity] = Field(default_factory=list)
    disabled: list[RegistryEntity] = Field(default_factory=list)
    orphaned: list[RegistryEntity] = Field(default_factory=list)
    unused: list[RegistryEntity] = Field(default_factory=list)


def entity_domain(entity_id: str) -> str:
    return entity_id.split(DOMAIN_SEPARATOR, 1)[0]


def entity_platform(entity: RegistryEntity) -> str:
    return entity.platform or UNKNOWN_PLATFORM


def resolve_entity_area(entity: RegistryEntity, index: RegistryIndex) -> str:
    """Own area first, then the area of an existing device, else unassigned."""
    if entity.area_id:
        return entity.area_id
    device = index.device(entity.device_id)
    if device is not None and device.area_id:
        return device.area_id
    return UNASSIGNED_AREA


def is_orphaned(entity: RegistryEntity, index: RegistryIndex) -> bool:
    return bool(entity.device_id) and not index.has_device(entity.device_id)


def classify_entities(entities: Iterable[RegistryEntity], index: RegistryIndex) -> EntityClassification:
    result = EntityClassification()

    for entity in entities:
        result.by_platform.setdefault(entity_platform(entity), []).append(entity)
        result.by_domain.setdefault(entity_domain(entity.entity_id), []).append(entity)
        result.by_area.setdefault(resolve_entity_area(entity, index), []).append(entity)

        if entity.hidden_by:
            result.hidden.append(entity)
        if entity.disabled_by:
            result.disabled.append(entity)
        if is_orphaned(entity, index):
            result.orphaned.append(entity)
        if not index.has_state(entity.entity_id):
            result.unused.append(entity)

    return result
