"""
Execution Layer - Fee selection, routing, signing and submission.

This module provides:
    - TradeCoordinator: One buy attempt as a state machine, serialised by a queue
    - TradeOutcome / TradeStage / TradeFailureReason: What an attempt produced
    - FeePolicy / GasSettings: Sticky compute-budget settings
    - JupiterRouter: Quote and unsigned swap transaction
    - Wallet: Keypair loading and signing
    - SolanaRpcClient: Broadcast, confirmation and fee queries

Gas settings are written only by the coordinator and only after a
confirmed trade.
"""

from .gas import FeePolicy, GasSettings, median_priority_fee
from .router import (
    DEFAULT_JUPITER_API_URL,
    WRAPPED_SOL_MINT,
    JupiterRouter,
    Route,
    RouterError,
    sol_to_lamports,
)
from .rpc import ConfirmationTimeout, RpcError, SignatureStatus, SolanaRpcClient
from .trade_coordinator import (
    TradeConfig,
    TradeCoordinator,
    TradeFailureReason,
    TradeOutcome,
    TradeStage,
)
from .wallet import (
    SigningError,
    Wallet,
    attach_fee_instructions,
    load_keypair,
    secret_key_to_json_array,
)

__all__ = [
    # Coordinator
    "TradeCoordinator",
    "TradeConfig",
    "TradeOutcome",
    "TradeStage",
    "TradeFailureReason",
    # Gas
    "FeePolicy",
    "GasSettings",
    "median_priority_fee",
    # Router
    "JupiterRouter",
    "Route",
    "RouterError",
    "DEFAULT_JUPITER_API_URL",
    "WRAPPED_SOL_MINT",
    "sol_to_lamports",
    # RPC
    "SolanaRpcClient",
    "SignatureStatus",
    "RpcError",
    "ConfirmationTimeout",
    # Wallet
    "Wallet",
    "SigningError",
    "attach_fee_instructions",
    "load_keypair",
    "secret_key_to_json_array",
]
