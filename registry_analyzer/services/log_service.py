import json
import queue
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from registry_analyzer.core import settings
from registry_analyzer.models.schemas import OperationLogItem


_DETAIL_MAX_CHARS = 4000
_WRITE_IDLE_TIMEOUT_SEC = 0.25
_WRITE_BATCH_MAX = 200

_queue: queue.Queue[OperationLogItem] = queue.Queue(maxsize=settings.HA_LOG_QUEUE_MAX)
_worker_thread: threading.Thread | None = None
_stop_event = threading.Event()
_worker_state_lock = threading.Lock()
_dropped_count = 0


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _backup_path(index: int) -> Path:
    return settings.HA_LOG_PATH.with_name(f"{settings.HA_LOG_PATH.name}.{index}")


def _compact_detail(detail: Any) -> dict[str, Any]:
    data = detail if isinstance(detail, dict) else {"value": detail}
    raw = json.dumps(data, ensure_ascii=False, default=str)
    if len(raw) <= _DETAIL_MAX_CHARS:
        return json.loads(raw)
    return {"_truncated": True, "_size": len(raw), "preview": raw[:_DETAIL_MAX_CHARS]}


def _rotate_if_needed() -> None:
    path = settings.HA_LOG_PATH
    if not path.exists() or path.stat().st_size < settings.HA_LOG_MAX_BYTES:
        return

    _backup_path(settings.HA_LOG_BACKUP_COUNT).unlink(missing_ok=True)
    for idx in range(settings.HA_LOG_BACKUP_COUNT - 1, 0, -1):
        src = _backup_path(idx)
        if src.exists():
            src.replace(_backup_path(idx + 1))
    path.replace(_backup_path(1))


def _write_batch(entries: list[OperationLogItem]) -> None:
    global _dropped_count
    lines = [json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) for entry in entries]
    with settings.log_lock:
        try:
            settings.HA_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
            _rotate_if_needed()
            with settings.HA_LOG_PATH.open("a", encoding="utf-8") as f:
                f.write("\n".join(lines))
                f.write("\n")
        except OSError:
            with _worker_state_lock:
                _dropped_count += len(entries)


def _drain_once() -> int:
    try:
        entries = [_queue.get(timeout=_WRITE_IDLE_TIMEOUT_SEC)]
    except queue.Empty:
        return 0

    while len(entries) < _WRITE_BATCH_MAX:
        try:
            entries.append(_queue.get_nowait())
        except queue.Empty:
            break

    try:
        _write_batch(entries)
    finally:
        for _ in entries:
            _queue.task_done()
    return len(entries)


def _writer_loop() -> None:
    while not _stop_event.is_set() or not _queue.empty():
        _drain_once()


def start_log_worker() -> None:
    global _worker_thread
    with _worker_state_lock:
        if _worker_thread and _worker_thread.is_alive():
            return
        _stop_event.clear()
        _worker_thread = threading.Thread(target=_writer_loop, name="registry-analyzer-log-writer", daemon=True)
        _worker_thread.start()


def stop_log_worker(timeout_sec: float = 2.0) -> None:
    global _worker_thread
    with _worker_state_lock:
        worker = _worker_thread
        if not worker:
            return
        _stop_event.set()

    worker.join(timeout=timeout_sec)
    with _worker_state_lock:
        if _worker_thread is worker:
            _worker_thread = None


def flush_logs(timeout_sec: float = 2.0) -> None:
    """Wait until queued entries reach the file, or the timeout passes."""
    deadline = time.perf_counter() + timeout_sec
    while _queue.unfinished_tasks > 0 and time.perf_counter() < deadline:
        time.sleep(0.01)


def _enqueue(item: OperationLogItem) -> None:
    global _dropped_count
    start_log_worker()
    try:
        _queue.put_nowait(item)
    except queue.Full:
        with _worker_state_lock:
            _dropped_count += 1


def log_operation(
    *,
    event_type: str,
    source: str,
    action: str,
    method: str | None = None,
    path: str | None = None,
    status_code: int | None = None,
    duration_ms: float | None = None,
    client_ip: str | None = None,
    trace_id: str | None = None,
    success: bool | None = None,
    detail: Any = None,
) -> OperationLogItem:
    item = OperationLogItem(
        event_id=uuid4().hex,
        created_at=_now_iso(),
        event_type=event_type,
        source=source,
        action=action,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        client_ip=client_ip,
        trace_id=trace_id,
        success=success,
        detail=_compact_detail(detail or {}),
    )
    _enqueue(item)
    return item


def log_http_request(
    *,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: str | None,
) -> OperationLogItem:
    return log_operation(
        event_type="http_request",
        source="api",
        action="http.request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        client_ip=client_ip,
        success=status_code < 400,
    )


def list_recent_logs(
    *,
    limit: int = 200,
    source: str | None = None,
    event_type: str | None = None,
) -> list[OperationLogItem]:
    flush_logs()
    safe_limit = max(1, min(limit, 1000))
    with settings.log_lock:
        files = [settings.HA_LOG_PATH] + [_backup_path(i) for i in range(1, settings.HA_LOG_BACKUP_COUNT + 1)]
        result: list[OperationLogItem] = []
        for file_path in files:
            if not file_path.exists():
                continue
            for line in reversed(file_path.read_text(encoding="utf-8").splitlines()):
                if not line.strip():
                    continue
                try:
                    item = OperationLogItem.model_validate_json(line)
                except ValueError:
                    continue
                if source and item.source != source:
                    continue
                if event_type and item.event_type != event_type:
                    continue
                result.append(item)
                if len(result) >= safe_limit:
                    return result
        return result


def get_log_storage_meta() -> dict[str, Any]:
    with settings.log_lock:
        size = settings.HA_LOG_PATH.stat().st_size if settings.HA_LOG_PATH.exists() else 0
    with _worker_state_lock:
        dropped = _dropped_count
    return {
        "storage": "file",
        "log_path": str(settings.HA_LOG_PATH),
        "current_size_bytes": size,
        "max_bytes": settings.HA_LOG_MAX_BYTES,
        "backup_count": settings.HA_LOG_BACKUP_COUNT,
        "dropped_count": dropped,
        "queue_max": settings.HA_LOG_QUEUE_MAX,
        "queue_size": _queue.qsize(),
    }
