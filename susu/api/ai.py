from typing import Any, Dict

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.execution import ExecutionError
from ..providers.gemini import GeminiSplitAdvisor
from ..providers.vault import VaultReader
from .vault import get_vault_reader

router = APIRouter(prefix="/api/ai")


class SplitSuggestionRequest(BaseModel):
    totalAmount: float = Field(..., strict=True, description="Total payout to divide (JSON number)")


def get_split_advisor() -> GeminiSplitAdvisor:
    return GeminiSplitAdvisor()


@router.post("/suggest-split")
async def suggest_split(
    request: SplitSuggestionRequest,
    reader: VaultReader = Depends(get_vault_reader),
    advisor: GeminiSplitAdvisor = Depends(get_split_advisor),
) -> Dict[str, Any]:
    if request.totalAmount <= 0:
        raise HTTPException(status_code=400, detail="A valid positive totalAmount is required.")

    try:
        members = await reader.get_members()
    except (httpx.HTTPError, ExecutionError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to read vault members: {exc}")

    suggestion = await advisor.suggest_split(members, request.totalAmount)
    if "error" in suggestion:
        raise HTTPException(status_code=500, detail=suggestion["error"])
    return {"success": True, "suggestion": suggestion}
