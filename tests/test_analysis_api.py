from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from registry_analyzer.core import settings
from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.main import app
from registry_analyzer.models.schemas import EntityState, RegistryEntity
from registry_analyzer.services.analyzer import RegistryAnalyzer
from registry_analyzer.services import log_service


class StaticSource:
    async def fetch_entity_registry(self):
        return [
            RegistryEntity(entity_id="sensor.porch_battery", name="Porch"),
            RegistryEntity(entity_id="light.porch", name="Porch"),
        ]

    async def fetch_device_registry(self):
        return []

    async def fetch_area_registry(self):
        return []

    async def fetch_states(self):
        return [EntityState(entity_id="light.porch", state="on")]


class BrokenSource(StaticSource):
    async def fetch_area_registry(self):
        raise RegistryFetchError(source="area_registry", message="websocket auth failed: auth_invalid")


class TestAnalysisApi(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        log_patch = patch.object(settings, "HA_LOG_PATH", Path(tmp.name) / "operations.jsonl")
        log_patch.start()
        self.addCleanup(log_patch.stop)
        self.addCleanup(log_service.flush_logs)
        self.client = TestClient(app)

    def _use_source(self, source) -> None:
        analyzer_patch = patch(
            "registry_analyzer.services.tool_service.build_analyzer",
            new=lambda: RegistryAnalyzer(source),
        )
        analyzer_patch.start()
        self.addCleanup(analyzer_patch.stop)

    def test_list_tools(self) -> None:
        resp = self.client.get("/v1/tools")
        self.assertEqual(200, resp.status_code)
        self.assertEqual(["analyzeEntities", "findDuplicateEntities", "suggestCleanup"], resp.json()["tools"])
        self.assertEqual(
            ["hide_diagnostic", "review_platform", "organize_areas"],
            [x["type"] for x in resp.json()["suggestion_rules"]],
        )

    def test_unknown_tool_is_rejected_before_fetching(self) -> None:
        self._use_source(BrokenSource())
        resp = self.client.post("/v1/tools/call", json={"tool_name": "deleteEverything"})
        self.assertEqual(400, resp.status_code)
        self.assertEqual("unknown tool: deleteEverything", resp.json()["detail"])

    def test_tool_call_runs_cleanup(self) -> None:
        self._use_source(StaticSource())
        resp = self.client.post("/v1/tools/call", json={"tool_name": "suggest_cleanup", "trace_id": "t-1"})
        self.assertEqual(200, resp.status_code)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual("t-1", body["trace_id"])
        self.assertEqual(["hide_diagnostic"], [x["type"] for x in body["data"]["suggestions"]])
        self.assertEqual("Porch", body["data"]["duplicates"][0]["name"])

    def test_analysis_entities_route(self) -> None:
        self._use_source(StaticSource())
        resp = self.client.get("/v1/analysis/entities")
        self.assertEqual(200, resp.status_code)
        summary = resp.json()["summary"]
        self.assertEqual(2, summary["total_entities"])
        self.assertEqual(1, summary["unused_count"])

    def test_duplicates_route(self) -> None:
        self._use_source(StaticSource())
        body = self.client.get("/v1/analysis/duplicates").json()
        self.assertEqual(1, body["count"])
        self.assertEqual(2, body["duplicates"][0]["count"])

    def test_fetch_failure_maps_to_bad_gateway(self) -> None:
        self._use_source(BrokenSource())
        for path in ("/v1/analysis/entities", "/v1/analysis/cleanup"):
            with self.subTest(path=path):
                resp = self.client.get(path)
                self.assertEqual(502, resp.status_code)
                detail = resp.json()["detail"]
                self.assertEqual("registry_fetch_failed", detail["error_code"])
                self.assertEqual("area_registry", detail["source"])

        resp = self.client.post("/v1/tools/call", json={"tool_name": "analyzeEntities"})
        self.assertEqual(502, resp.status_code)

    def test_config_view_masks_token(self) -> None:
        with patch.object(settings, "HA_TOKEN", "abcdefghijklmnop"):
            body = self.client.get("/v1/config/ha").json()
        self.assertTrue(body["ha_token_set"])
        self.assertEqual("abcd...mnop", body["ha_token_preview"])

    def test_config_update_stays_in_memory(self) -> None:
        with patch.object(settings, "HA_BASE_URL", "http://old.local:8123"), patch.object(settings, "HA_TOKEN", ""):
            resp = self.client.put("/v1/config/ha", json={"ha_base_url": " http://new.local:8123/ ", "ha_token": "tok"})
            self.assertEqual(200, resp.status_code)
            body = resp.json()
            self.assertEqual(["ha_base_url", "ha_token"], body["updated_fields"])
            self.assertEqual("http://new.local:8123", settings.HA_BASE_URL)
            self.assertEqual("***", body["config"]["ha_token_preview"])

            rejected = self.client.put("/v1/config/ha", json={"ha_base_url": "   "})
            self.assertEqual(400, rejected.status_code)
            self.assertEqual("http://new.local:8123", settings.HA_BASE_URL)

    def test_lifespan_runs_log_writer(self) -> None:
        with TestClient(app) as client:
            self.assertTrue(log_service._worker_thread.is_alive())
            client.get("/v1/tools")
        self.assertIsNone(log_service._worker_thread)
        self.assertEqual("/v1/tools", log_service.list_recent_logs(event_type="http_request")[0].path)

    def test_requests_are_logged(self) -> None:
        self.client.get("/v1/tools")
        body = self.client.get("/v1/logs/recent", params={"event_type": "http_request"}).json()
        self.assertEqual("/v1/tools", body["logs"][0]["path"])


if __name__ == "__main__":
    unittest.main()
