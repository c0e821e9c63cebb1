"""
Price Update Router
API endpoints for the price update scheduler: status, manual runs,
schedule configuration and per-vendor auto-update flags.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from typing import List, Optional
from datetime import datetime, timezone
import logging

from scheduler.exceptions import (
    AlreadyRunningError,
    ConfigReadError,
    ConfigWriteError,
    VendorNotFoundError,
)
from scheduler.schedule_config import (
    ScheduleConfig,
    build_cron_expression,
    get_next_run_time,
    get_schedule_description,
    validate_cron_expression,
)
from scheduler.services import PriceUpdateServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/price-update", tags=["price-update"])


def get_services(request: Request) -> PriceUpdateServices:
    """Dependency returning the process-wide price update services."""
    services = getattr(request.app.state, "price_update", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Price update services are not available"
        )
    return services


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# Pydantic models
class ManualRunRequest(BaseModel):
    vendor_ids: Optional[List[str]] = Field(default=None, description="Vendors to update; omit for all")


class ConfigUpdateRequest(BaseModel):
    enabled: bool = False
    days: List[str] = Field(default_factory=list, description="Weekday names; empty means every day")
    hour: int = Field(default=6, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    cron_expression: Optional[str] = Field(default=None, description="Overrides days/hour/minute")
    timezone: Optional[str] = None
    max_vendors_per_run: int = Field(default=50, ge=0)
    delay_between_vendors: float = Field(default=5.0, ge=0, description="Seconds")
    retry_attempts: int = Field(default=3, ge=0)
    timeout: float = Field(default=60.0, gt=0, description="Seconds per attempt")


class VendorToggleRequest(BaseModel):
    vendor_id: str
    enabled: bool


class VendorToggleAllRequest(BaseModel):
    enabled: bool


def _config_view(config: ScheduleConfig) -> dict:
    window = config.schedule_window() or {}
    next_run = config.get_next_run_time()
    return {
        **config.model_dump(),
        "days": window.get("days", []),
        "hour": window.get("hour"),
        "minute": window.get("minute"),
        "description": config.describe(),
        "next_run": next_run.isoformat() if next_run else None,
    }


@router.get("/status")
async def get_status(services: PriceUpdateServices = Depends(get_services)):
    """Get scheduler status."""
    return {"success": True, "status": services.manager.get_status(), "timestamp": _timestamp()}


@router.get("/session")
async def get_current_session(services: PriceUpdateServices = Depends(get_services)):
    """Get the current (latest) price update session."""
    session = services.scheduler.get_current_session()
    return {
        "success": True,
        "session": session.to_dict() if session else None,
        "is_running": services.scheduler.is_price_update_running(),
        "timestamp": _timestamp(),
    }


@router.get("/sessions")
async def get_session_history(services: PriceUpdateServices = Depends(get_services)):
    """Get recent price update sessions, newest first."""
    sessions = services.scheduler.get_session_history()
    return {"success": True, "sessions": [session.to_dict() for session in sessions]}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, services: PriceUpdateServices = Depends(get_services)):
    """Get one recent session by id."""
    session = services.scheduler.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")
    return {"success": True, "session": session.to_dict()}


@router.post("/manual")
async def trigger_manual_run(request: ManualRunRequest,
                             services: PriceUpdateServices = Depends(get_services)):
    """Run a price update now for specific vendors or all auto-update vendors."""
    logger.info(
        f"Manual price update requested for "
        f"{f'{len(request.vendor_ids)} vendors' if request.vendor_ids else 'all vendors'}"
    )
    try:
        session = await services.manager.trigger_manual_run(request.vendor_ids)
    except AlreadyRunningError as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "success": False,
                "message": str(e),
                "current_session": e.session.to_dict() if e.session else None,
            },
        )

    return {
        "success": session.status.value == "completed",
        "message": f"Price update {session.status.value}",
        "session": session.to_dict(),
    }


@router.get("/config")
async def get_config(services: PriceUpdateServices = Depends(get_services)):
    """Get the live schedule configuration."""
    config = services.scheduler.get_config()
    return {"success": True, "config": _config_view(config), "timestamp": _timestamp()}


@router.put("/config")
async def update_config(request: ConfigUpdateRequest,
                        services: PriceUpdateServices = Depends(get_services)):
    """Update, persist and apply the schedule configuration."""
    current = services.scheduler.get_config()
    try:
        cron_expression = request.cron_expression or build_cron_expression(
            request.days, request.hour, request.minute
        )
        config = ScheduleConfig(
            cron_expression=cron_expression,
            enabled=request.enabled,
            max_vendors_per_run=request.max_vendors_per_run,
            delay_between_vendors=request.delay_between_vendors,
            retry_attempts=request.retry_attempts,
            timeout=request.timeout,
            timezone=request.timezone or current.timezone,
        )
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown weekday: {e.args[0]}")
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=[error["msg"] for error in e.errors()]
        )

    try:
        services.manager.update_config(config)
    except ConfigWriteError as e:
        logger.error(f"Failed to save configuration: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save configuration: {str(e)}"
        )

    return {
        "success": True,
        "message": "Configuration updated successfully",
        "config": _config_view(config),
        "timestamp": _timestamp(),
    }


@router.post("/reload-config")
async def reload_config(services: PriceUpdateServices = Depends(get_services)):
    """Re-read the stored configuration and apply it."""
    try:
        config = services.manager.reload_config()
    except ConfigReadError as e:
        logger.error(f"Failed to reload configuration: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reload configuration: {str(e)}"
        )
    return {"success": True, "config": _config_view(config), "status": services.manager.get_status()}


@router.post("/start")
async def start_scheduler(services: PriceUpdateServices = Depends(get_services)):
    """Arm the recurring timer."""
    started = services.manager.start_scheduler()
    if not started:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Timer not started: scheduler is not initialized or the schedule is disabled"
        )
    return {"success": True, "status": services.manager.get_status()}


@router.post("/stop")
async def stop_scheduler(services: PriceUpdateServices = Depends(get_services)):
    """Disarm the recurring timer. A run in progress finishes normally."""
    stopped = services.manager.stop_scheduler()
    return {"success": True, "stopped": stopped, "status": services.manager.get_status()}


@router.get("/vendors")
async def get_vendors(services: PriceUpdateServices = Depends(get_services)):
    """Get per-vendor auto-update settings."""
    try:
        vendors = services.config_manager.load_vendor_configs()
    except ConfigReadError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {
        "success": True,
        "vendors": [vendor.model_dump(mode="json") for vendor in vendors],
        "active_count": sum(1 for vendor in vendors if vendor.auto_update_enabled),
        "total": len(vendors),
    }


@router.post("/vendor-toggle")
async def toggle_vendor(request: VendorToggleRequest,
                        services: PriceUpdateServices = Depends(get_services)):
    """Enable or disable auto-update for one vendor."""
    try:
        services.config_manager.update_vendor_auto_update(request.vendor_id, request.enabled)
    except VendorNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (ConfigReadError, ConfigWriteError) as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"success": True, "vendor_id": request.vendor_id, "enabled": request.enabled}


@router.post("/vendor-toggle-all")
async def toggle_all_vendors(request: VendorToggleAllRequest,
                             services: PriceUpdateServices = Depends(get_services)):
    """Enable or disable auto-update for every vendor."""
    try:
        affected = services.config_manager.set_all_vendors_auto_update(request.enabled)
    except (ConfigReadError, ConfigWriteError) as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {
        "success": True,
        "message": f"Auto-update {'activated' if request.enabled else 'deactivated'} for all vendors",
        "affected_vendors": affected,
        "enabled": request.enabled,
    }


@router.get("/validate-cron")
async def validate_cron(expression: str):
    """Validate a cron expression."""
    if not validate_cron_expression(expression):
        return {"success": True, "valid": False, "error": "Invalid cron expression format"}

    next_run = get_next_run_time(expression)
    return {
        "success": True,
        "valid": True,
        "description": get_schedule_description(expression),
        "next_run": next_run.isoformat() if next_run else None,
    }
