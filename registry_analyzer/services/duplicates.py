from collections.abc import Iterable

from registry_analyzer.models.schemas import DuplicateCluster, DuplicateMember, RegistryEntity
from registry_analyzer.services.classifier import DOMAIN_SEPARATOR


def normalized_entity_name(entity: RegistryEntity) -> str:
    """Display name if set, else the object id part of the entity id."""
    if entity.name:
        return entity.name
    _, separator, object_id = entity.entity_id.partition(DOMAIN_SEPARATOR)
    return object_id if separator and object_id else entity.entity_id


def _member(entity: RegistryEntity) -> DuplicateMember:
    return DuplicateMember(
        entity_id=entity.entity_id,
        platform=entity.platform,
        device_id=entity.device_id,
        disabled=bool(entity.disabled_by),
    )


def find_duplicate_clusters(entities: Iterable[RegistryEntity]) -> list[DuplicateCluster]:
    name_groups: dict[str, list[RegistryEntity]] = {}
    for entity in entities:
        name_groups.setdefault(normalized_entity_name(entity), []).append(entity)

    clusters = [
        DuplicateCluster(name=name, count=len(members), entities=[_member(x) for x in members])
        for name, members in name_groups.items()
        if len(members) > 1
    ]
    return sorted(clusters, key=lambda cluster: cluster.count, reverse=True)
