"""
Transaction queue models and types.
"""

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Relay job lifecycle status."""
    QUEUED = "queued"            # Waiting in the queue
    SUBMITTING = "submitting"    # Dequeued, broadcast and/or awaiting confirmation
    CONFIRMED = "confirmed"      # Mined successfully
    FAILED = "failed"            # Signing, broadcast, revert or timeout failure


_ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.SUBMITTING},
    JobStatus.SUBMITTING: {JobStatus.CONFIRMED, JobStatus.FAILED},
    JobStatus.CONFIRMED: set(),
    JobStatus.FAILED: set(),
}


@dataclass(frozen=True)
class TransactionRequest:
    """Where a relayed transaction goes and what it carries."""
    target: str                                 # Destination address
    payload: str = "0x"                         # Encoded calldata (hex)
    value: int = 0                              # Wei to attach

    @classmethod
    def coerce(
        cls,
        tx: Union["TransactionRequest", Mapping[str, Any]],
    ) -> "TransactionRequest":
        """Accept either a request or a ``{to|target, data|payload, value}`` mapping."""
        if isinstance(tx, TransactionRequest):
            return tx
        target = tx.get("target") or tx.get("to")
        if not target:
            raise ValueError("transaction requires a target address")
        payload = tx.get("payload") or tx.get("data") or "0x"
        value = tx.get("value") or 0
        if isinstance(value, str):
            value = int(value, 16) if value.lower().startswith("0x") else int(value)
        return cls(target=str(target), payload=str(payload), value=int(value))

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "payload": self.payload, "value": self.value}


@dataclass
class TransactionJob:
    """One pending relay transaction and its lifecycle."""
    description: str
    transaction: TransactionRequest
    id: str = field(default_factory=lambda: f"job_{secrets.token_hex(8)}")
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    last_error: Optional[str] = None

    # Submission details
    nonce: Optional[int] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def target(self) -> str:
        return self.transaction.target

    @property
    def payload(self) -> str:
        return self.transaction.payload

    @property
    def value(self) -> int:
        return self.transaction.value

    @property
    def is_final(self) -> bool:
        return self.status in {JobStatus.CONFIRMED, JobStatus.FAILED}

    def _transition(self, new_status: JobStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Job {self.id} cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self.updated_at = _utcnow()

    def mark_submitting(self) -> None:
        self._transition(JobStatus.SUBMITTING)
        self.attempts += 1

    def mark_confirmed(self, block_number: Optional[int] = None) -> None:
        self._transition(JobStatus.CONFIRMED)
        self.block_number = block_number

    def mark_failed(self, error: str) -> None:
        self._transition(JobStatus.FAILED)
        self.last_error = error

    def snapshot(self) -> "TransactionJob":
        """Detached copy for callers inspecting the queue."""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "target": self.target,
            "payload": self.payload,
            "value": str(self.value),
            "status": self.status.value,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "nonce": self.nonce,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class TransactionReceipt:
    """Mined transaction outcome."""
    tx_hash: str
    block_number: int
    status: int = 1                             # 1 = success, 0 = revert
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1
