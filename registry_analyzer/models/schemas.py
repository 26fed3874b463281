from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


ImpactLevel = Literal["low", "medium", "high"]
SuggestionType = Literal["hide_diagnostic", "review_platform", "organize_areas"]


def _blank_to_none(raw: Any) -> Any:
    if isinstance(raw, str) and not raw.strip():
        return None
    return raw


class RegistryEntity(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    entity_id: str = Field(min_length=1, description="Entity id, e.g. sensor.kitchen_temperature")
    name: str | None = Field(default=None, description="User-assigned display name")
    device_id: str | None = Field(default=None, description="Owning device registry id")
    area_id: str | None = Field(default=None, description="Directly assigned area id")
    platform: str | None = Field(default=None, description="Integration that created the entity")
    hidden_by: str | None = Field(default=None, description="Who hid the entity (user/integration)")
    disabled_by: str | None = Field(default=None, description="Who disabled the entity (user/integration)")

    @field_validator("name", "device_id", "area_id", "platform", "hidden_by", "disabled_by", mode="before")
    @classmethod
    def _optional_text(cls, raw: Any) -> Any:
        return _blank_to_none(raw)


class RegistryDevice(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    area_id: str | None = None

    @field_validator("area_id", mode="before")
    @classmethod
    def _optional_area(cls, raw: Any) -> Any:
        return _blank_to_none(raw)


class RegistryArea(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    area_id: str = Field(min_length=1)
    name: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _optional_name(cls, raw: Any) -> Any:
        return _blank_to_none(raw)


class EntityState(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    entity_id: str = Field(min_length=1)
    state: str | None = None


class PlatformGroup(BaseModel):
    platform: str
    count: int
    entities: list[str] = Field(default_factory=list)


class DomainGroup(BaseModel):
    domain: str
    count: int
    entities: list[str] = Field(default_factory=list)


class AreaGroup(BaseModel):
    area_id: str
    area_name: str
    count: int
    entities: list[str] = Field(default_factory=list)


class AnalysisSummary(BaseModel):
    total_entities: int
    total_devices: int
    total_areas: int
    hidden_count: int
    disabled_count: int
    orphaned_count: int
    unused_count: int
    unassigned_count: int


class ProblemEntities(BaseModel):
    hidden: list[str] = Field(default_factory=list)
    disabled: list[str] = Field(default_factory=list)
    orphaned: list[str] = Field(default_factory=list)
    unused: list[str] = Field(default_factory=list)


class EntityAnalysis(BaseModel):
    summary: AnalysisSummary
    by_platform: list[PlatformGroup] = Field(default_factory=list)
    by_domain: list[DomainGroup] = Field(default_factory=list)
    by_area: list[AreaGroup] = Field(default_factory=list)
    problem_entities: ProblemEntities = Field(default_factory=ProblemEntities)


class DuplicateMember(BaseModel):
    entity_id: str
    platform: str | None = None
    device_id: str | None = None
    disabled: bool = False


class DuplicateCluster(BaseModel):
    name: str
    count: int
    entities: list[DuplicateMember] = Field(default_factory=list)


class Suggestion(BaseModel):
    type: SuggestionType
    description: str
    entities: list[str] = Field(default_factory=list)
    impact: ImpactLevel
    platform: str | None = Field(default=None, description="Set by platform review suggestions only")


class CleanupReport(BaseModel):
    analysis: EntityAnalysis
    duplicates: list[DuplicateCluster] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)


class ToolCallRequest(BaseModel):
    tool_name: str = Field(min_length=1, description="Analysis tool, e.g. suggestCleanup")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments (currently unused)")
    trace_id: str | None = Field(default=None, description="Optional trace id for logs")

    model_config = {
        "json_schema_extra": {
            "example": {
                "tool_name": "suggestCleanup",
                "arguments": {},
                "trace_id": "req-001",
            }
        }
    }


class ToolCallResponse(BaseModel):
    success: bool = Field(description="Whether the tool call succeeded")
    message: str = Field(description="Result message")
    trace_id: str | None = Field(default=None, description="Trace id echoed from request")
    data: Any = Field(default=None, description="Tool result")


class HAConfigView(BaseModel):
    ha_base_url: str
    ha_token_set: bool
    ha_token_preview: str | None = None
    ha_timeout_sec: float
    ha_ws_open_timeout_sec: float


class HAConfigUpdateRequest(BaseModel):
    ha_base_url: str | None = None
    ha_token: str | None = None
    ha_timeout_sec: float | None = Field(default=None, gt=0)
    ha_ws_open_timeout_sec: float | None = Field(default=None, gt=0)


class PlatformCount(BaseModel):
    platform: str
    count: int


class ConnectionCheck(BaseModel):
    ha_base_url: str
    version: str | None = None
    location_name: str | None = None
    entity_count: int
    top_platforms: list[PlatformCount] = Field(default_factory=list)


class OperationLogItem(BaseModel):
    event_id: str
    created_at: str
    event_type: str
    source: str
    action: str
    method: str | None = None
    path: str | None = None
    status_code: int | None = None
    duration_ms: float | None = None
    client_ip: str | None = None
    trace_id: str | None = None
    success: bool | None = None
    detail: dict[str, Any] = Field(default_factory=dict)
