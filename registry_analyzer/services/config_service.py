from typing import Any

from fastapi import HTTPException

from registry_analyzer.core import settings
from registry_analyzer.models.schemas import HAConfigUpdateRequest, HAConfigView


def mask_token(token: str) -> str | None:
    if not token:
        return None
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def get_ha_config_view() -> HAConfigView:
    with settings.runtime_config_lock:
        return HAConfigView(
            ha_base_url=settings.HA_BASE_URL,
            ha_token_set=bool(settings.HA_TOKEN),
            ha_token_preview=mask_token(settings.HA_TOKEN),
            ha_timeout_sec=settings.HA_TIMEOUT_SEC,
            ha_ws_open_timeout_sec=settings.HA_WS_OPEN_TIMEOUT_SEC,
        )


def apply_ha_config_update(req: HAConfigUpdateRequest) -> list[str]:
    """Update connection settings in memory; nothing is written to disk."""
    updated_fields: list[str] = []
    with settings.runtime_config_lock:
        if req.ha_base_url is not None:
            normalized = req.ha_base_url.strip().rstrip("/")
            if not normalized:
                raise HTTPException(status_code=400, detail="ha_base_url cannot be empty")
            settings.HA_BASE_URL = normalized
            updated_fields.append("ha_base_url")

        if req.ha_token is not None:
            settings.HA_TOKEN = req.ha_token.strip()
            updated_fields.append("ha_token")

        if req.ha_timeout_sec is not None:
            settings.HA_TIMEOUT_SEC = req.ha_timeout_sec
            updated_fields.append("ha_timeout_sec")

        if req.ha_ws_open_timeout_sec is not None:
            settings.HA_WS_OPEN_TIMEOUT_SEC = req.ha_ws_open_timeout_sec
            updated_fields.append("ha_ws_open_timeout_sec")

    return updated_fields


def auth_headers(token: str | None = None) -> dict[str, str]:
    if token is None:
        with settings.runtime_config_lock:
            token = settings.HA_TOKEN
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }


def update_ha_config_response(req: HAConfigUpdateRequest) -> dict[str, Any]:
    updated_fields = apply_ha_config_update(req)
    return {
        "success": True,
        "updated_fields": updated_fields,
        "config": get_ha_config_view().model_dump(mode="json"),
    }
