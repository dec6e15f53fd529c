"""REST endpoints: GET /api/health."""
from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()


@router.get("/api/health")
async def health():
    return {
        "message": "Notely API is running!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
