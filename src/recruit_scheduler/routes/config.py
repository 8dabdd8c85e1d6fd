"""Configuration API endpoint for client discovery."""

from fastapi import APIRouter

from recruit_scheduler.dependencies import SettingsDep

router = APIRouter(tags=["config"])


@router.get("/api/config")
async def get_config(settings: SettingsDep) -> dict[str, str | bool]:
    """Return configuration for UI clients (e.g., NATS WS URL)."""
    return {
        "nats_ws_url": settings.nats_ws_url,
        "realtime_enabled": settings.realtime_enabled,
    }
