from fastapi import APIRouter

from ..deps import metrics_response
from ..store import isoformat_z, utcnow

router = APIRouter()

ENDPOINTS = {
    "POST /api/notifications": "Receive notifications from client devices",
    "POST /api/ping": "Health check",
    "GET /api/notifications": "View received notifications",
    "GET /api/stats": "View device statistics",
    "DELETE /api/notifications": "Clear all notifications",
}


@router.get("/")
async def index():
    return {
        "message": "Notification Server is running!",
        "endpoints": ENDPOINTS,
        "server_time": isoformat_z(utcnow()),
    }


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/metrics")
async def metrics():
    return metrics_response()
