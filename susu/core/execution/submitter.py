"""
Nonce-ordered transaction submitter for the relay worker account.

Jobs are queued fire-and-forget and sent strictly one at a time, in the
order they were queued:
- the in-flight flag keeps a single submission outstanding per account
- the nonce only advances after a confirmed receipt
- any failure resyncs the nonce from the chain's transaction count
"""

import asyncio
import logging
import threading
from collections import OrderedDict, deque
from typing import Any, Deque, Dict, List, Mapping, Optional, Union

from susu.config import settings

from .chain_client import (
    ChainClient,
    EvmChainClient,
    TransactionRevertError,
    TransactionTimeoutError,
)
from .models import JobStatus, TransactionJob, TransactionReceipt, TransactionRequest
from .nonce_manager import NonceManager


MAX_BACKOFF_MULTIPLIER = 5


class TransactionSubmitter:
    """
    Serialises outbound transactions from one backend-controlled account.

    Responsibilities:
    - Queue jobs in FIFO order
    - Assign the current nonce to the head job and broadcast it
    - Wait (bounded) for confirmation before moving the nonce forward
    - Resync the nonce from the network after any failure
    - Keep finished jobs around for inspection
    """

    def __init__(
        self,
        client: Optional[ChainClient] = None,
        *,
        gas_limit: Optional[int] = None,
        confirmation_timeout_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
        max_history: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.gas_limit = gas_limit or settings.tx_gas_limit
        self.confirmation_timeout = confirmation_timeout_seconds or settings.confirmation_timeout_seconds
        self.poll_interval = poll_interval_seconds or settings.queue_poll_interval_seconds
        self.max_history = settings.queue_max_history if max_history is None else max_history

        self._pending: Deque[TransactionJob] = deque()
        self._jobs: "OrderedDict[str, TransactionJob]" = OrderedDict()
        self._queue_lock = threading.Lock()
        self._in_flight = False
        self._consecutive_failures = 0
        self._disabled_warned = False

        self._loop_task: Optional[asyncio.Task] = None
        self._lifecycle_lock = asyncio.Lock()
        self._running = False

        if client is not None and client.can_sign:
            self.nonces: Optional[NonceManager] = NonceManager(client, client.address)
            self.logger.info(f"Transaction queue: worker wallet loaded ({client.address})")
        else:
            self.nonces = None
            self.logger.error(
                "Transaction queue: worker key not configured; jobs will be queued but not sent"
            )

    # ---------------------------
    # Queue operations
    # ---------------------------
    @property
    def enabled(self) -> bool:
        return self.nonces is not None

    @property
    def address(self) -> Optional[str]:
        return self.nonces.address if self.nonces else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def submit_job(
        self,
        description: str,
        tx: Union[TransactionRequest, Mapping[str, Any]],
    ) -> str:
        """
        Queue a transaction for the worker account to send.

        Args:
            description: Human-readable label for logs and inspection
            tx: TransactionRequest or ``{target|to, payload|data, value}`` mapping

        Returns:
            The new job id
        """
        job = TransactionJob(description=description, transaction=TransactionRequest.coerce(tx))
        with self._queue_lock:
            self._pending.append(job)
            self._jobs[job.id] = job
            depth = len(self._pending)
        self.logger.info(f"[{job.id}] Queued: {description} (to={job.target}, value={job.value}, depth={depth})")
        return job.id

    def inspect_queue(self) -> List[TransactionJob]:
        """Snapshot of every tracked job, oldest first, including finished ones."""
        with self._queue_lock:
            return [job.snapshot() for job in self._jobs.values()]

    def pending(self) -> List[TransactionJob]:
        with self._queue_lock:
            return [job.snapshot() for job in self._pending]

    def get_job(self, job_id: str) -> Optional[TransactionJob]:
        with self._queue_lock:
            job = self._jobs.get(job_id)
            return job.snapshot() if job else None

    def _dequeue(self) -> Optional[TransactionJob]:
        with self._queue_lock:
            return self._pending.popleft() if self._pending else None

    def _trim_history(self) -> None:
        with self._queue_lock:
            finished = [job_id for job_id, job in self._jobs.items() if job.is_final]
            for job_id in finished[: max(0, len(finished) - self.max_history)]:
                del self._jobs[job_id]

    # ---------------------------
    # Driver
    # ---------------------------
    async def initialize(self) -> Optional[int]:
        """Read the starting nonce from the chain. Failures are logged, not raised."""
        if not self.nonces:
            return None
        try:
            return await self.nonces.sync()
        except Exception as exc:  # noqa: BLE001
            self.logger.error(f"Transaction queue: failed to initialise nonce: {exc}")
            return None

    async def process_next(self) -> Optional[TransactionJob]:
        """
        Send the job at the head of the queue and wait for its outcome.

        Returns:
            Snapshot of the processed job, or None when nothing was attempted
        """
        # check and set the flag with no await in between
        if self._in_flight or not self._pending:
            return None
        if not self.enabled:
            if not self._disabled_warned:
                self.logger.warning(
                    f"Transaction queue disabled; {len(self._pending)} job(s) waiting for a worker key"
                )
                self._disabled_warned = True
            return None
        self._in_flight = True

        try:
            if not self.nonces.is_synced:
                try:
                    await self.nonces.sync()
                except Exception as exc:  # noqa: BLE001
                    self.logger.error(
                        f"Transaction queue: nonce unavailable, leaving {len(self._pending)} job(s) queued: {exc}"
                    )
                    self._consecutive_failures += 1
                    return None

            job = self._dequeue()
            if job is None:
                return None

            job.mark_submitting()
            self.logger.info(f"[{job.id}] Submitting: {job.description} (attempt {job.attempts})")

            try:
                receipt = await self._send_and_confirm(job)
            except asyncio.CancelledError:
                job.mark_failed("cancelled before confirmation")
                self.nonces.invalidate()
                self.logger.warning(f"[{job.id}] Failed: cancelled before confirmation (nonce={job.nonce})")
                raise
            except Exception as exc:  # noqa: BLE001
                job.mark_failed(str(exc) or type(exc).__name__)
                self._consecutive_failures += 1
                self.logger.error(
                    f"[{job.id}] Failed: {job.last_error} (nonce={job.nonce}, tx_hash={job.tx_hash})"
                )
                await self._resync_after_failure(job)
            else:
                job.mark_confirmed(receipt.block_number)
                next_nonce = self.nonces.advance(job.nonce)
                self._consecutive_failures = 0
                self.logger.info(
                    f"[{job.id}] Confirmed: {job.tx_hash} in block {receipt.block_number} "
                    f"(nonce={job.nonce}, next={next_nonce})"
                )

            self._trim_history()
            return job.snapshot()
        finally:
            self._in_flight = False

    async def _send_and_confirm(self, job: TransactionJob) -> TransactionReceipt:
        nonce = self.nonces.reserve()
        job.nonce = nonce

        tx = {
            "to": job.target,
            "data": job.payload,
            "value": job.value,
            "nonce": nonce,
            "gas": self.gas_limit,
        }
        handle = await self.client.send_transaction(tx)
        job.tx_hash = handle.tx_hash
        self.logger.info(f"[{job.id}] Sent: {handle.tx_hash} (nonce={nonce})")

        try:
            receipt = await asyncio.wait_for(
                handle.wait_for_confirmation(timeout=self.confirmation_timeout),
                timeout=self.confirmation_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransactionTimeoutError(
                f"Confirmation timeout after {self.confirmation_timeout}s for {handle.tx_hash}"
            ) from exc

        if not receipt.succeeded:
            raise TransactionRevertError(
                f"Transaction {handle.tx_hash} reverted in block {receipt.block_number}",
                receipt=receipt,
            )
        return receipt

    async def _resync_after_failure(self, job: TransactionJob) -> None:
        try:
            await self.nonces.sync()
        except Exception as exc:  # noqa: BLE001
            self.nonces.invalidate()
            self.logger.error(f"[{job.id}] Nonce resync failed, will retry before next job: {exc}")

    # ---------------------------
    # Periodic loop
    # ---------------------------
    def next_delay(self) -> float:
        """Tick interval, stretched while submissions keep failing."""
        multiplier = min(max(1, self._consecutive_failures), MAX_BACKOFF_MULTIPLIER)
        return self.poll_interval * multiplier

    async def run_forever(self) -> None:
        while self._running:
            job = None
            try:
                job = await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.logger.error(f"Transaction queue tick crashed: {exc}", exc_info=True)

            if job is not None and job.status == JobStatus.CONFIRMED and self._pending:
                await asyncio.sleep(0)
                continue
            await asyncio.sleep(self.next_delay())

    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self._running:
                return
            self._running = True
            await self.initialize()
            self._loop_task = asyncio.create_task(self._run_loop(), name="transaction-queue-loop")
            self.logger.info(f"Transaction queue started; polling every {self.poll_interval}s")

    async def _run_loop(self) -> None:
        try:
            await self.run_forever()
        except asyncio.CancelledError:
            return

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            self.logger.info("Transaction queue stopping")

            if self._loop_task:
                self._loop_task.cancel()
                try:
                    await self._loop_task
                except asyncio.CancelledError:
                    pass
                self._loop_task = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def close(self) -> None:
        await self.stop()
        if self.client is not None:
            await self.client.close()

    # ---------------------------
    # Introspection
    # ---------------------------
    def status(self) -> Dict[str, Any]:
        with self._queue_lock:
            pending = len(self._pending)
            tracked = len(self._jobs)
        return {
            "enabled": self.enabled,
            "address": self.address,
            "running": self._running,
            "in_flight": self._in_flight,
            "pending": pending,
            "tracked": tracked,
            "nonce": self.nonces.current if self.nonces else None,
            "consecutive_failures": self._consecutive_failures,
            "poll_interval_seconds": self.poll_interval,
        }


def build_chain_client() -> Optional[ChainClient]:
    """Chain client from settings, or None when the worker cannot sign."""
    rpc_url = settings.resolve_rpc_url()
    if not settings.has_worker_key:
        return None
    if not rpc_url:
        logging.getLogger(__name__).error("Transaction queue: RPC URL not configured")
        return None
    try:
        return EvmChainClient(
            rpc_url,
            settings.worker_private_key,
            chain_id=settings.chain_id,
            block_tag=settings.nonce_block_tag,
            timeout=settings.rpc_timeout_seconds,
            receipt_poll_interval=settings.confirmation_poll_seconds,
        )
    except Exception as exc:  # noqa: BLE001
        logging.getLogger(__name__).error(f"Transaction queue: invalid worker key: {exc}")
        return None


# Singleton instance
_submitter: Optional[TransactionSubmitter] = None


def get_transaction_submitter() -> TransactionSubmitter:
    """Get the process-wide submitter for the configured worker account."""
    global _submitter
    if _submitter is None:
        _submitter = TransactionSubmitter(build_chain_client())
    return _submitter


def reset_transaction_submitter(submitter: Optional[TransactionSubmitter] = None) -> None:
    """Replace the process-wide submitter (tests and reconfiguration)."""
    global _submitter
    _submitter = submitter
