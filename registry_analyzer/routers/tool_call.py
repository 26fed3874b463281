from typing import Any

from fastapi import APIRouter

from registry_analyzer.models.schemas import ToolCallRequest, ToolCallResponse
from registry_analyzer.services.suggestions import list_suggestion_rules
from registry_analyzer.services.tool_service import execute_tool_call, list_analysis_tools

router = APIRouter(prefix="/v1", tags=["tool-call"])


@router.get("/tools")
async def list_tools() -> dict[str, Any]:
    return {"tools": list_analysis_tools(), "suggestion_rules": list_suggestion_rules()}


@router.post("/tools/call", response_model=ToolCallResponse)
async def call_tool(req: ToolCallRequest) -> ToolCallResponse:
    return await execute_tool_call(req)
