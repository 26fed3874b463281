import asyncio
from typing import Protocol

from registry_analyzer.models.schemas import (
    CleanupReport,
    DuplicateCluster,
    EntityAnalysis,
    EntityState,
    RegistryArea,
    RegistryDevice,
    RegistryEntity,
)
from registry_analyzer.services.aggregator import aggregate_classification
from registry_analyzer.services.classifier import classify_entities
from registry_analyzer.services.duplicates import find_duplicate_clusters
from registry_analyzer.services.registry_index import build_registry_index
from registry_analyzer.services.suggestions import suggest_cleanup_actions


class RegistrySource(Protocol):
    async def fetch_entity_registry(self) -> list[RegistryEntity]: ...

    async def fetch_device_registry(self) -> list[RegistryDevice]: ...

    async def fetch_area_registry(self) -> list[RegistryArea]: ...

    async def fetch_states(self) -> list[EntityState]: ...


class RegistryAnalyzer:
    """Runs the registry analyses against a fresh snapshot on every call.

    Fetch errors from the source propagate unchanged; nothing is analyzed
    unless all four collections arrived.
    """

    def __init__(self, source: RegistrySource) -> None:
        self.source = source

    async def analyze_entities(self) -> EntityAnalysis:
        entities, devices, areas, states = await asyncio.gather(
            self.source.fetch_entity_registry(),
            self.source.fetch_device_registry(),
            self.source.fetch_area_registry(),
            self.source.fetch_states(),
        )

        index = build_registry_index(devices, areas, states)
        classification = classify_entities(entities, index)
        return aggregate_classification(
            classification,
            index,
            total_entities=len(entities),
            total_devices=len(devices),
            total_areas=len(areas),
        )

    async def find_duplicate_entities(self) -> list[DuplicateCluster]:
        entities = await self.source.fetch_entity_registry()
        return find_duplicate_clusters(entities)

    async def suggest_cleanup(self) -> CleanupReport:
        analysis = await self.analyze_entities()
        duplicates = await self.find_duplicate_entities()
        return CleanupReport(
            analysis=analysis,
            duplicates=duplicates,
            suggestions=suggest_cleanup_actions(analysis),
        )
