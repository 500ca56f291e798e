from typing import Any, Dict, Optional

from eth_utils import is_address
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from ..core.execution import JobStatus, TransactionRequest, get_transaction_submitter

router = APIRouter(prefix="/api/transactions")


class SubmitTransactionRequest(BaseModel):
    description: str = Field(..., min_length=1, description="Human-readable label for the job")
    to: str = Field(..., description="Destination address")
    data: str = Field(default="0x", description="Encoded calldata (hex)")
    value: str = Field(default="0", description="Wei to attach, decimal string")

    @field_validator("to")
    @classmethod
    def _valid_address(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError("to must be a valid address")
        return value

    @field_validator("data")
    @classmethod
    def _valid_calldata(cls, value: str) -> str:
        if not value.startswith("0x"):
            raise ValueError("data must be 0x-prefixed hex")
        try:
            bytes.fromhex(value[2:])
        except ValueError as exc:
            raise ValueError("data must be 0x-prefixed hex") from exc
        return value

    @field_validator("value")
    @classmethod
    def _valid_value(cls, value: str) -> str:
        if not (value.isascii() and value.isdecimal()):
            raise ValueError("value must be a non-negative integer string (wei)")
        return value

    def to_request(self) -> TransactionRequest:
        return TransactionRequest(target=self.to, payload=self.data, value=int(self.value))


@router.post("", status_code=202)
async def submit_transaction(request: SubmitTransactionRequest) -> Dict[str, Any]:
    submitter = get_transaction_submitter()
    job_id = submitter.submit_job(request.description, request.to_request())
    return {"success": True, "job_id": job_id, "queue_enabled": submitter.enabled}


@router.get("")
async def list_transactions(status: Optional[JobStatus] = None) -> Dict[str, Any]:
    jobs = get_transaction_submitter().inspect_queue()
    if status is not None:
        jobs = [job for job in jobs if job.status == status]
    return {"items": [job.to_dict() for job in jobs], "count": len(jobs)}


@router.get("/status")
async def queue_status() -> Dict[str, Any]:
    return get_transaction_submitter().status()


@router.get("/{job_id}")
async def get_transaction(job_id: str) -> Dict[str, Any]:
    job = get_transaction_submitter().get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job.to_dict()
