import os
from pathlib import Path
from threading import RLock
from typing import Callable, TypeVar


APP_NAME = "ha_registry_analyzer"
APP_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = APP_DIR.parent

T = TypeVar("T")


def read_env_file(path: Path) -> dict[str, str]:
    """Parse KEY=VALUE lines; comments, blanks and malformed lines are skipped."""
    if not path.is_file():
        return {}

    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        values[key] = value.strip().strip("\"'")
    return values


for _key, _value in read_env_file(PROJECT_ROOT / ".env").items():
    os.environ.setdefault(_key, _value)


def env(name: str, default: T, cast: Callable[[str], T] = str) -> T:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


HA_BASE_URL: str = env("HA_BASE_URL", "http://homeassistant.local:8123").rstrip("/")
HA_TOKEN: str = env("HA_TOKEN", env("HA_ACCESS_TOKEN", ""))
HA_TIMEOUT_SEC = env("HA_TIMEOUT_SEC", 10.0, float)
HA_WS_OPEN_TIMEOUT_SEC = env("HA_WS_OPEN_TIMEOUT_SEC", 10.0, float)
HA_WS_MAX_SIZE = max(1_000_000, env("HA_WS_MAX_SIZE", 16_000_000, int))

HA_LOG_PATH = Path(env("HA_LOG_PATH", str(APP_DIR / "logs" / "operations.jsonl"))).resolve()
HA_LOG_MAX_BYTES = env("HA_LOG_MAX_BYTES", 5 * 1024 * 1024, int)
HA_LOG_BACKUP_COUNT = max(1, env("HA_LOG_BACKUP_COUNT", 5, int))
HA_LOG_QUEUE_MAX = max(100, env("HA_LOG_QUEUE_MAX", 5000, int))

# Cleanup heuristics.
ANALYSIS_PLATFORM_REVIEW_MIN_ENTITIES = env("ANALYSIS_PLATFORM_REVIEW_MIN_ENTITIES", 50, int)
ANALYSIS_ORGANIZE_AREAS_MIN_UNASSIGNED = env("ANALYSIS_ORGANIZE_AREAS_MIN_UNASSIGNED", 10, int)
ANALYSIS_BUILTIN_PLATFORM: str = env("ANALYSIS_BUILTIN_PLATFORM", "homeassistant")

runtime_config_lock = RLock()
log_lock = RLock()
