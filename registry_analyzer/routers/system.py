from typing import Any

from fastapi import APIRouter, Query

from registry_analyzer.models.schemas import HAConfigUpdateRequest, HAConfigView
from registry_analyzer.services.config_service import get_ha_config_view, update_ha_config_response
from registry_analyzer.services.log_service import get_log_storage_meta, list_recent_logs

router = APIRouter(prefix="/v1", tags=["system"])


@router.get("/config/ha", response_model=HAConfigView)
async def read_connection_config() -> HAConfigView:
    return get_ha_config_view()


@router.put("/config/ha")
async def change_connection_config(req: HAConfigUpdateRequest) -> dict[str, Any]:
    return update_ha_config_response(req)


# Plain def: list_recent_logs blocks until queued entries are written.
@router.get("/logs/recent")
def recent_operation_logs(
    limit: int = Query(default=200, ge=1, le=1000),
    source: str | None = Query(default=None),
    event_type: str | None = Query(default=None),
) -> dict[str, Any]:
    logs = list_recent_logs(limit=limit, source=source, event_type=event_type)
    return {**get_log_storage_meta(), "logs": [item.model_dump(mode="json") for item in logs]}
