from typing import Any, AsyncIterator, Dict

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..config import settings
from ..core.execution import ExecutionError, TransactionBuilder, get_transaction_submitter
from ..providers.vault import VaultReader, build_vault_reader

router = APIRouter(prefix="/api")


class DistributionRequest(BaseModel):
    recipient: str = Field(..., description="Member receiving the payout")
    amount: str = Field(..., description="Amount in wei, decimal string")

    def amount_wei(self) -> int:
        if not (self.amount.isascii() and self.amount.isdecimal()) or int(self.amount) == 0:
            raise HTTPException(status_code=400, detail="amount must be a positive integer string (wei)")
        return int(self.amount)


def _vault_address() -> str:
    if not settings.has_vault:
        raise HTTPException(status_code=503, detail="Vault address is not configured")
    return settings.vault_address


async def get_vault_reader() -> AsyncIterator[VaultReader]:
    reader = build_vault_reader()
    if reader is None:
        raise HTTPException(status_code=503, detail="Vault address or RPC URL is not configured")
    try:
        yield reader
    finally:
        await reader.close()


@router.get("/vault/details")
async def vault_details(reader: VaultReader = Depends(get_vault_reader)) -> Dict[str, Any]:
    """Core details of the group vault read from the chain."""
    try:
        details = await reader.get_details()
    except (httpx.HTTPError, ExecutionError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Failed to fetch vault details: {exc}")
    return {"success": True, **details}


@router.post("/initiate-distribution")
async def initiate_distribution(request: DistributionRequest) -> Dict[str, Any]:
    """Prepare ``distributeFunds`` calldata for the admin to sign in their own wallet."""
    vault = _vault_address()
    try:
        tx = TransactionBuilder.build_distribute_funds(vault, request.recipient, request.amount_wei())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        "success": True,
        "message": "Transaction data prepared. Please send from frontend.",
        "transaction": TransactionBuilder.to_client_transaction(tx),
    }


@router.post("/vault/distribute", status_code=202)
async def relay_distribution(request: DistributionRequest) -> Dict[str, Any]:
    """Queue a ``distributeFunds`` call sent by the backend worker wallet."""
    vault = _vault_address()
    try:
        tx = TransactionBuilder.build_distribute_funds(vault, request.recipient, request.amount_wei())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    submitter = get_transaction_submitter()
    job_id = submitter.submit_job(f"Distribute {request.amount} wei to {request.recipient}", tx)
    return {"success": True, "job_id": job_id, "queue_enabled": submitter.enabled}
