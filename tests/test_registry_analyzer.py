from __future__ import annotations

import asyncio
import unittest

from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.models.schemas import EntityState, RegistryArea, RegistryDevice, RegistryEntity
from registry_analyzer.services.analyzer import RegistryAnalyzer


class CountingSource:
    def __init__(self, *, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def _fetch(self, name: str, rows: list):
        self.calls.append(name)
        await asyncio.sleep(0)
        if name == self.fail_on:
            raise RegistryFetchError(source=name, message="HA API Error: 500 Internal Server Error", status_code=500)
        return rows

    async def fetch_entity_registry(self):
        return await self._fetch(
            "entity_registry",
            [
                RegistryEntity(entity_id="light.kitchen", device_id="dev1"),
                RegistryEntity(entity_id="light.kitchen_2", name="kitchen"),
            ],
        )

    async def fetch_device_registry(self):
        return await self._fetch("device_registry", [RegistryDevice(id="dev1", area_id="kitchen")])

    async def fetch_area_registry(self):
        return await self._fetch("area_registry", [RegistryArea(area_id="kitchen", name="Kitchen")])

    async def fetch_states(self):
        return await self._fetch("states", [EntityState(entity_id="light.kitchen", state="off")])


class TestRegistryAnalyzer(unittest.IsolatedAsyncioTestCase):
    async def test_analyze_entities_joins_all_registries(self) -> None:
        analysis = await RegistryAnalyzer(CountingSource()).analyze_entities()

        self.assertEqual(2, analysis.summary.total_entities)
        self.assertEqual(1, analysis.summary.total_devices)
        self.assertEqual(1, analysis.summary.total_areas)
        self.assertEqual(["light.kitchen_2"], analysis.problem_entities.unused)
        kitchen = next(x for x in analysis.by_area if x.area_id == "kitchen")
        self.assertEqual(("Kitchen", ["light.kitchen"]), (kitchen.area_name, kitchen.entities))

    async def test_any_fetch_failure_propagates(self) -> None:
        for failing in ("entity_registry", "device_registry", "area_registry", "states"):
            with self.subTest(failing=failing):
                analyzer = RegistryAnalyzer(CountingSource(fail_on=failing))
                with self.assertRaises(RegistryFetchError) as ex:
                    await analyzer.analyze_entities()
                self.assertEqual(failing, ex.exception.source)
                self.assertEqual(500, ex.exception.status_code)

    async def test_cleanup_fails_without_partial_report(self) -> None:
        with self.assertRaises(RegistryFetchError):
            await RegistryAnalyzer(CountingSource(fail_on="states")).suggest_cleanup()

    async def test_duplicates_only_need_entity_registry(self) -> None:
        source = CountingSource(fail_on="states")
        clusters = await RegistryAnalyzer(source).find_duplicate_entities()

        self.assertEqual(["entity_registry"], source.calls)
        self.assertEqual([("kitchen", 2)], [(x.name, x.count) for x in clusters])

    async def test_every_call_refetches(self) -> None:
        source = CountingSource()
        analyzer = RegistryAnalyzer(source)
        await analyzer.analyze_entities()
        await analyzer.analyze_entities()
        self.assertEqual(2, source.calls.count("states"))

        source.calls.clear()
        await analyzer.suggest_cleanup()
        self.assertEqual(2, source.calls.count("entity_registry"))
        self.assertEqual(1, source.calls.count("device_registry"))


if __name__ == "__main__":
    unittest.main()
