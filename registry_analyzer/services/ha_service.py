import asyncio
import json
from time import perf_counter
from typing import Any, TypeVar
from urllib.parse import urlparse

import httpx
import websockets
from pydantic import BaseModel, ValidationError

from registry_analyzer.core import settings
from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.models.schemas import (
    ConnectionCheck,
    EntityState,
    PlatformCount,
    RegistryArea,
    RegistryDevice,
    RegistryEntity,
)
from registry_analyzer.services.classifier import entity_platform
from registry_analyzer.services.config_service import auth_headers
from registry_analyzer.services.log_service import log_operation


ENTITY_REGISTRY_LIST = "config/entity_registry/list"
DEVICE_REGISTRY_LIST = "config/device_registry/list"
AREA_REGISTRY_LIST = "config/area_registry/list"
STATES_PATH = "/api/states"
CONFIG_PATH = "/api/config"
TOP_PLATFORM_LIMIT = 5

RowT = TypeVar("RowT", bound=BaseModel)


def ha_websocket_url(base_url: str) -> str:
    parsed = urlparse((base_url or "").strip().rstrip("/"))
    scheme = "wss" if parsed.scheme == "https" else "ws"
    netloc = parsed.netloc or parsed.path
    return f"{scheme}://{netloc}/api/websocket"


async def _ws_send_command(ws: Any, request_id: int, payload: dict[str, Any]) -> dict[str, Any]:
    message = dict(payload)
    message["id"] = request_id
    await ws.send(json.dumps(message, ensure_ascii=False))
    while True:
        data = json.loads(await ws.recv())
        if data.get("type") == "event":
            continue
        if data.get("id") == request_id:
            return data


def parse_registry_rows(rows: Any, model: type[RowT], *, source: str) -> list[RowT]:
    if not isinstance(rows, list):
        raise RegistryFetchError(source=source, message=f"expected a list, got {type(rows).__name__}")
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as ex:
        raise RegistryFetchError(source=source, message=f"invalid {source} row: {ex.errors()[0]['msg']}") from ex


class HARegistryClient:
    """Fetches registry and state snapshots from a Home Assistant instance.

    Registries are only listed over the websocket API; states come from REST.
    Connection settings are captured at construction so one analysis run
    sees a consistent config.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout_sec: float | None = None,
        ws_open_timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        with settings.runtime_config_lock:
            self.base_url = (base_url or settings.HA_BASE_URL).strip().rstrip("/")
            self.token = settings.HA_TOKEN if token is None else token
            self.timeout_sec = timeout_sec or settings.HA_TIMEOUT_SEC
            self.ws_open_timeout_sec = ws_open_timeout_sec or settings.HA_WS_OPEN_TIMEOUT_SEC
        self.transport = transport

    async def fetch_entity_registry(self) -> list[RegistryEntity]:
        rows = await self._ws_list(ENTITY_REGISTRY_LIST, source="entity_registry")
        return parse_registry_rows(rows, RegistryEntity, source="entity_registry")

    async def fetch_device_registry(self) -> list[RegistryDevice]:
        rows = await self._ws_list(DEVICE_REGISTRY_LIST, source="device_registry")
        return parse_registry_rows(rows, RegistryDevice, source="device_registry")

    async def fetch_area_registry(self) -> list[RegistryArea]:
        rows = await self._ws_list(AREA_REGISTRY_LIST, source="area_registry")
        return parse_registry_rows(rows, RegistryArea, source="area_registry")

    async def fetch_states(self) -> list[EntityState]:
        rows = await self._rest_get(STATES_PATH, source="states")
        return parse_registry_rows(rows, EntityState, source="states")

    async def fetch_config(self) -> dict[str, Any]:
        payload = await self._rest_get(CONFIG_PATH, source="config")
        if not isinstance(payload, dict):
            raise RegistryFetchError(source="config", message="unexpected config payload")
        return payload

    def _require_token(self, source: str) -> None:
        if not self.token:
            raise RegistryFetchError(source=source, message="HA token missing")

    def _log_request(
        self,
        *,
        method: str,
        path: str,
        source: str,
        started: float,
        status_code: int,
        error: str | None = None,
    ) -> None:
        detail: dict[str, Any] = {"context": f"ha.{source}", "base_url": self.base_url}
        if error:
            detail["message"] = error
        log_operation(
            event_type="ha_request",
            source="system",
            action="ha.request",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=round((perf_counter() - started) * 1000, 2),
            success=error is None and status_code < 400,
            detail=detail,
        )

    async def _rest_get(self, path: str, *, source: str) -> Any:
        self._require_token(source)
        started = perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
                resp = await client.get(f"{self.base_url}{path}", headers=auth_headers(self.token))
        except httpx.HTTPError as ex:
            self._log_request(method="GET", path=path, source=source, started=started, status_code=0, error=str(ex))
            raise RegistryFetchError(source=source, message=f"request failed: {ex}") from ex

        self._log_request(method="GET", path=path, source=source, started=started, status_code=resp.status_code)
        if resp.status_code >= 400:
            raise RegistryFetchError(
                source=source,
                message=f"HA API error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as ex:
            raise RegistryFetchError(source=source, message="response is not valid JSON") from ex

    async def _ws_list(self, command: str, *, source: str) -> Any:
        self._require_token(source)
        started = perf_counter()
        try:
            async with websockets.connect(
                ha_websocket_url(self.base_url),
                open_timeout=self.ws_open_timeout_sec,
                close_timeout=5,
                max_size=settings.HA_WS_MAX_SIZE,
            ) as ws:
                first = json.loads(await ws.recv())
                if first.get("type") != "auth_required":
                    raise RegistryFetchError(source=source, message=f"unexpected websocket handshake: {first.get('type')}")

                await ws.send(json.dumps({"type": "auth", "access_token": self.token}, ensure_ascii=False))
                second = json.loads(await ws.recv())
                if second.get("type") != "auth_ok":
                    raise RegistryFetchError(source=source, message=f"websocket auth failed: {second.get('type')}")

                response = await _ws_send_command(ws, 1, {"type": command})
        except RegistryFetchError as ex:
            self._log_request(method="WS", path=command, source=source, started=started, status_code=0, error=ex.message)
            raise
        except Exception as ex:
            self._log_request(method="WS", path=command, source=source, started=started, status_code=0, error=str(ex))
            raise RegistryFetchError(source=source, message=f"websocket request failed: {ex}") from ex

        if not response.get("success"):
            error = response.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            self._log_request(method="WS", path=command, source=source, started=started, status_code=0, error=message)
            raise RegistryFetchError(source=source, message=f"{command} failed: {message}")

        self._log_request(method="WS", path=command, source=source, started=started, status_code=200)
        return response.get("result")


def top_platforms(entities: list[RegistryEntity], limit: int = TOP_PLATFORM_LIMIT) -> list[PlatformCount]:
    counts: dict[str, int] = {}
    for entity in entities:
        platform = entity_platform(entity)
        counts[platform] = counts.get(platform, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [PlatformCount(platform=name, count=count) for name, count in ranked[:limit]]


async def check_ha_connection(client: HARegistryClient) -> ConnectionCheck:
    config, entities = await asyncio.gather(client.fetch_config(), client.fetch_entity_registry())
    return ConnectionCheck(
        ha_base_url=client.base_url,
        version=config.get("version"),
        location_name=config.get("location_name"),
        entity_count=len(entities),
        top_platforms=top_platforms(entities),
    )
