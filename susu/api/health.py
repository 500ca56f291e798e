from fastapi import APIRouter
from typing import Dict, Any

from ..config import settings
from ..core.execution import get_transaction_submitter

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check with the relay queue's view of its configuration"""

    queue = get_transaction_submitter().status()

    return {
        "status": "ok" if queue["enabled"] else "degraded",
        "message": "Susu Backend is running!",
        "queue": {
            "enabled": queue["enabled"],
            "running": queue["running"],
            "pending": queue["pending"],
        },
        "vault_configured": settings.has_vault,
        "ai_configured": settings.has_gemini_key,
    }
