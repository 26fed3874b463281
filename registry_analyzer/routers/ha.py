from fastapi import APIRouter

from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.models.schemas import ConnectionCheck
from registry_analyzer.services.ha_service import HARegistryClient, check_ha_connection
from registry_analyzer.services.tool_service import fetch_error_to_http

router = APIRouter(prefix="/v1/ha", tags=["ha"])


@router.get("/check", response_model=ConnectionCheck)
async def ha_check() -> ConnectionCheck:
    try:
        return await check_ha_connection(HARegistryClient())
    except RegistryFetchError as ex:
        raise fetch_error_to_http(ex) from ex
