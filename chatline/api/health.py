from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
from chatline.api.dependencies import get_hub
from chatline.database import check_database_health
from chatline.realtime.hub import ChatHub

router = APIRouter()


def _describe(status):
    if status is None:
        return "disabled"
    return "connected" if status else "disconnected"


@router.get("/health")
async def health_check(hub: ChatHub = Depends(get_hub)):
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )

    return {
        "status": "healthy" if db_health["overall"] else "unhealthy",
        "timestamp": datetime.utcnow(),
        "databases": {
            "mysql": _describe(db_health["mysql"]),
            "mongodb": _describe(db_health["mongodb"])
        },
        "connections": hub.connection_count,
        "pending_writes": hub.router.pending_writes,
        "service": "chatline"
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow()}
