from __future__ import annotations

import queue
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from registry_analyzer.core import settings
from registry_analyzer.services import log_service


class TestOperationLog(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.log_path = Path(tmp.name) / "operations.jsonl"
        log_patch = patch.object(settings, "HA_LOG_PATH", self.log_path)
        log_patch.start()
        self.addCleanup(log_patch.stop)
        self.addCleanup(log_service.flush_logs)
        log_service.stop_log_worker()

    def test_log_operation_only_enqueues(self) -> None:
        with patch.object(log_service, "start_log_worker"):
            item = log_service.log_operation(event_type="tool_call", source="api", action="tool.analyzeEntities")
            self.assertFalse(self.log_path.exists())
            self.assertEqual(1, log_service._queue.qsize())

        log_service.start_log_worker()
        logs = log_service.list_recent_logs(event_type="tool_call")

        self.assertEqual([item.event_id], [x.event_id for x in logs])
        self.assertTrue(self.log_path.exists())

    def test_recent_logs_newest_first_with_filters(self) -> None:
        log_service.log_operation(event_type="ha_request", source="system", action="ha.request", path="/api/states")
        log_service.log_http_request(method="GET", path="/v1/tools", status_code=200, duration_ms=1.5, client_ip=None)
        log_service.log_http_request(method="GET", path="/v1/nope", status_code=404, duration_ms=0.4, client_ip=None)

        logs = log_service.list_recent_logs()
        self.assertEqual(["/v1/nope", "/v1/tools", "/api/states"], [x.path for x in logs])
        self.assertEqual([False, True], [x.success for x in log_service.list_recent_logs(source="api")])
        self.assertEqual(["/api/states"], [x.path for x in log_service.list_recent_logs(event_type="ha_request")])
        self.assertEqual(1, len(log_service.list_recent_logs(limit=1)))

    def test_full_queue_counts_dropped_entries(self) -> None:
        before = log_service.get_log_storage_meta()["dropped_count"]
        with patch.object(log_service, "start_log_worker"), patch.object(log_service, "_queue", queue.Queue(maxsize=1)):
            log_service.log_operation(event_type="tool_call", source="api", action="tool.first")
            log_service.log_operation(event_type="tool_call", source="api", action="tool.second")
            meta = log_service.get_log_storage_meta()

        self.assertEqual(before + 1, meta["dropped_count"])
        self.assertEqual(1, meta["queue_size"])

    def test_large_detail_is_truncated(self) -> None:
        item = log_service.log_operation(
            event_type="tool_call",
            source="api",
            action="tool.suggestCleanup",
            detail={"entities": ["sensor.x"] * 1000},
        )
        self.assertTrue(item.detail["_truncated"])
        self.assertLessEqual(len(item.detail["preview"]), 4000)

    def test_rotation_keeps_backups(self) -> None:
        with patch.object(settings, "HA_LOG_MAX_BYTES", 1):
            log_service.log_operation(event_type="tool_call", source="api", action="tool.first")
            log_service.flush_logs()
            log_service.log_operation(event_type="tool_call", source="api", action="tool.second")
            actions = [x.action for x in log_service.list_recent_logs()]

        self.assertEqual(["tool.second", "tool.first"], actions)
        self.assertTrue(self.log_path.with_name("operations.jsonl.1").exists())


if __name__ == "__main__":
    unittest.main()
