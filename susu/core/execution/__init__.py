"""
Transaction Relay Layer

Sends vault transactions from the backend's worker wallet:
- TransactionSubmitter: FIFO queue that sends one transaction at a time
- NonceManager: Tracks the worker account's next nonce
- EvmChainClient: JSON-RPC access and local signing
- TransactionBuilder: Builds SusuGroupVault calldata
- VaultCallDecoder: Decodes SusuGroupVault view results

Usage:
    from susu.core.execution import (
        TransactionBuilder,
        get_transaction_submitter,
    )

    submitter = get_transaction_submitter()
    await submitter.start()

    tx = TransactionBuilder.build_distribute_funds(vault, "0x...", 10**18)
    job_id = submitter.submit_job("Payout to member", tx)

    # Poll for the outcome
    job = submitter.get_job(job_id)
"""

from .models import (
    JobStatus,
    TransactionRequest,
    TransactionJob,
    TransactionReceipt,
)

from .chain_client import (
    ChainClient,
    PendingTransaction,
    EvmChainClient,
    EvmPendingTransaction,
    ExecutionError,
    RpcError,
    SignerNotConfiguredError,
    NonceNotInitializedError,
    TransactionSubmitError,
    TransactionRevertError,
    TransactionTimeoutError,
)

from .nonce_manager import (
    NonceManager,
    NonceState,
)

from .tx_builder import (
    TransactionBuilder,
    VaultCallDecoder,
)

from .submitter import (
    TransactionSubmitter,
    build_chain_client,
    get_transaction_submitter,
    reset_transaction_submitter,
)

__all__ = [
    # Models
    "JobStatus",
    "TransactionRequest",
    "TransactionJob",
    "TransactionReceipt",
    # Chain client
    "ChainClient",
    "PendingTransaction",
    "EvmChainClient",
    "EvmPendingTransaction",
    "ExecutionError",
    "RpcError",
    "SignerNotConfiguredError",
    "NonceNotInitializedError",
    "TransactionSubmitError",
    "TransactionRevertError",
    "TransactionTimeoutError",
    # Nonce Manager
    "NonceManager",
    "NonceState",
    # Transaction Builder
    "TransactionBuilder",
    "VaultCallDecoder",
    # Submitter
    "TransactionSubmitter",
    "build_chain_client",
    "get_transaction_submitter",
    "reset_transaction_submitter",
]
