from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel

from registry_analyzer.core.errors import RegistryFetchError
from registry_analyzer.models.schemas import ToolCallRequest, ToolCallResponse
from registry_analyzer.services.analyzer import RegistryAnalyzer
from registry_analyzer.services.ha_service import HARegistryClient
from registry_analyzer.services.log_service import log_operation


ToolHandler = Callable[[RegistryAnalyzer], Awaitable[Any]]

ANALYSIS_TOOLS: dict[str, ToolHandler] = {
    "analyzeEntities": lambda analyzer: analyzer.analyze_entities(),
    "findDuplicateEntities": lambda analyzer: analyzer.find_duplicate_entities(),
    "suggestCleanup": lambda analyzer: analyzer.suggest_cleanup(),
}
TOOL_NAME_ALIASES: dict[str, str] = {
    "analyze_entities": "analyzeEntities",
    "find_duplicate_entities": "findDuplicateEntities",
    "suggest_cleanup": "suggestCleanup",
}


def build_analyzer() -> RegistryAnalyzer:
    return RegistryAnalyzer(HARegistryClient())


def list_analysis_tools() -> list[str]:
    return sorted(ANALYSIS_TOOLS.keys())


def resolve_tool_name(tool_name: str) -> str:
    name = tool_name.strip()
    name = TOOL_NAME_ALIASES.get(name, name)
    if name not in ANALYSIS_TOOLS:
        raise HTTPException(status_code=400, detail=f"unknown tool: {tool_name}")
    return name


def fetch_error_to_http(ex: RegistryFetchError) -> HTTPException:
    return HTTPException(status_code=502, detail=ex.to_error_detail())


def _to_json(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_json(x) for x in result]
    return result


async def execute_tool_call(req: ToolCallRequest) -> ToolCallResponse:
    tool_name = resolve_tool_name(req.tool_name)
    started = perf_counter()
    try:
        result = await ANALYSIS_TOOLS[tool_name](build_analyzer())
    except RegistryFetchError as ex:
        log_operation(
            event_type="tool_call",
            source="api",
            action=f"tool.{tool_name}",
            duration_ms=round((perf_counter() - started) * 1000, 2),
            trace_id=req.trace_id,
            success=False,
            detail=ex.to_error_detail(),
        )
        raise fetch_error_to_http(ex) from ex

    log_operation(
        event_type="tool_call",
        source="api",
        action=f"tool.{tool_name}",
        duration_ms=round((perf_counter() - started) * 1000, 2),
        trace_id=req.trace_id,
        success=True,
    )
    return ToolCallResponse(
        success=True,
        message=f"{tool_name} completed",
        trace_id=req.trace_id,
        data=_to_json(result),
    )
