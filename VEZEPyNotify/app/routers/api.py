from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from typing import Any, Dict, List

from ..deps import NOTIFICATIONS, get_service
from ..service import NotificationService, RejectedInput

router = APIRouter()


class SubmitOut(BaseModel):
    success: bool = True
    message: str
    notification_id: int
    total_notifications: int


class PingOut(BaseModel):
    success: bool = True
    message: str = "Server is running and ready to receive notifications!"
    server_time: str
    uptime: float


class DeviceOut(BaseModel):
    device_id: Any = None
    count: int
    first_seen: str
    last_seen: str


class StatsOut(BaseModel):
    success: bool = True
    total_devices: int
    total_notifications: int
    devices: List[DeviceOut]


class ClearedOut(BaseModel):
    success: bool = True
    message: str


@router.post("/notifications", response_model=SubmitOut)
async def submit_notification(request: Request, service: NotificationService = Depends(get_service)):
    # Raw JSON rather than a body model: missing fields must yield the 400 shape, not a 422
    body = await request.json()
    try:
        res = service.submit(body)
    except RejectedInput:
        NOTIFICATIONS.labels(result="rejected").inc()
        raise
    NOTIFICATIONS.labels(result="accepted").inc()
    return SubmitOut(
        message=f"Notification received successfully from {res['app_name']}",
        notification_id=res["assigned_id"],
        total_notifications=res["total"],
    )


@router.post("/ping", response_model=PingOut)
def ping(service: NotificationService = Depends(get_service)):
    res = service.ping()
    return PingOut(server_time=res["server_time"], uptime=res["uptime_seconds"])


@router.get("/notifications")
def list_notifications(
    limit: str | None = Query(None, description="Page size, default 50"),
    offset: str | None = Query(None, description="Number of most recent notifications to skip"),
    service: NotificationService = Depends(get_service),
) -> Dict[str, Any]:
    page = service.query(limit, offset)
    return {
        "success": True,
        "total": page["total"],
        "showing": page["showing"],
        "notifications": page["records"],
    }


@router.get("/stats", response_model=StatsOut)
def stats(service: NotificationService = Depends(get_service)):
    res = service.stats()
    return StatsOut(
        total_devices=res["device_count"],
        total_notifications=res["total"],
        devices=[DeviceOut(**d) for d in res["devices"]],
    )


@router.delete("/notifications", response_model=ClearedOut)
def clear_notifications(service: NotificationService = Depends(get_service)):
    res = service.reset()
    return ClearedOut(message=f"Cleared {res['cleared_count']} notifications")
