from typing import Any

from fastapi import APIRouter

from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.models.schemas import CleanupReport, EntityAnalysis
from registry_analyzer.services import tool_service

router = APIRouter(prefix="/v1/analysis", tags=["analysis"])


@router.get("/entities", response_model=EntityAnalysis)
async def analyze_entities() -> EntityAnalysis:
    try:
        return await tool_service.build_analyzer().analyze_entities()
    except RegistryFetchError as ex:
        raise tool_service.fetch_error_to_http(ex) from ex


@router.get("/duplicates")
async def find_duplicate_entities() -> dict[str, Any]:
    try:
        duplicates = await tool_service.build_analyzer().find_duplicate_entities()
    except RegistryFetchError as ex:
        raise tool_service.fetch_error_to_http(ex) from ex
    return {
        "count": len(duplicates),
        "duplicates": [x.model_dump(mode="json") for x in duplicates],
    }


@router.get("/cleanup", response_model=CleanupReport)
async def suggest_cleanup() -> CleanupReport:
    try:
        return await tool_service.build_analyzer().suggest_cleanup()
    except RegistryFetchError as ex:
        raise tool_service.fetch_error_to_http(ex) from ex
