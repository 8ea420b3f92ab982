"""
blochpool - Multi-Phase Token Sale Pool

Sells a token (BLOCH) for a stable quote asset (USDT) across time-boxed
pricing phases, pays periodic rewards on purchase volume, and lets the owner
withdraw proceeds and reclaim unsold allocation. Balances live in a
double-entry Ledger; the pool moves them only through a LedgerAdapter.

Usage:
    from blochpool import Ledger, LedgerAdapter, Pool, token, stablecoin

    ledger = Ledger("sale", initial_time=t0)
    ledger.register_unit(token("BLOCH", "Bloch Token", decimal_places=18))
    ledger.register_unit(stablecoin("USDT", "Tether USD", decimal_places=6))
    for wallet in ("owner", "bloch_pool", "alice"):
        ledger.register_wallet(wallet)
    # ... fund bloch_pool with BLOCH and alice with USDT ...

    pool = Pool(LedgerAdapter(ledger), owner="owner")
    pool.set_phase_timing("owner", 0, t0, t0 + timedelta(days=30))

    ledger.approve("alice", "bloch_pool", "USDT", Decimal("1000"))
    pool.purchase("alice", Decimal("1000"))
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    ExecuteResult,
    LedgerError,
    InsufficientFunds,
    InsufficientAllowance,
    PrecisionViolation,
    TimestampViolation,
    AmountOutOfRange,
    UnitNotRegistered,
    WalletNotRegistered,
    token,
    stablecoin,
    to_decimal,
    quantize_amount,
    SYSTEM_WALLET,
    BASIS_POINTS,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_STABLECOIN,
)

# Ledger
from .ledger import Ledger

# Transfer capability
from .adapter import (
    LedgerAdapter,
    Transfer,
    TransferFailed,
    TransferFailure,
)

# Configuration
from .config import (
    PoolConfig,
    PhaseTerms,
    DEFAULT_PHASES,
    default_config,
)

# Errors
from .errors import (
    PoolError,
    SaleValidationError,
    NoActivePhaseError,
    BelowMinimumError,
    ExceedsMaximumError,
    AllocationExhaustedError,
    RewardsDisabledError,
    IntervalNotMetError,
    NothingToClaimError,
    PhaseActiveError,
    UnauthorizedError,
    ResourceError,
    PaymentFailedError,
    InsufficientBalanceError,
    ConfigurationError,
    OverlapError,
    InvalidWindowError,
    UnknownPhaseError,
)

# Phase schedule
from .phases import (
    Phase,
    PhaseStatus,
    PhaseSchedule,
)

# Purchase engine
from .purchase import (
    PurchaseLimits,
    PurchasePlan,
    PurchaseReceipt,
    compute_quote_cost,
    compute_purchase,
)

# Reward engine
from .rewards import (
    RewardConfig,
    BuyerAccount,
    ClaimPlan,
    ClaimReceipt,
    compute_reward,
    compute_claim,
)

# Pool
from .pool import Pool

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction', 'Unit', 'ExecuteResult',
    'LedgerError', 'InsufficientFunds', 'InsufficientAllowance', 'PrecisionViolation',
    'TimestampViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'token', 'stablecoin', 'to_decimal', 'quantize_amount', 'AmountOutOfRange',
    'SYSTEM_WALLET', 'BASIS_POINTS', 'UNIT_TYPE_TOKEN', 'UNIT_TYPE_STABLECOIN',
    # Ledger
    'Ledger',
    # Adapter
    'LedgerAdapter', 'Transfer', 'TransferFailed', 'TransferFailure',
    # Configuration
    'PoolConfig', 'PhaseTerms', 'DEFAULT_PHASES', 'default_config',
    # Errors
    'PoolError', 'SaleValidationError', 'NoActivePhaseError', 'BelowMinimumError',
    'ExceedsMaximumError', 'AllocationExhaustedError', 'RewardsDisabledError',
    'IntervalNotMetError', 'NothingToClaimError', 'PhaseActiveError', 'UnauthorizedError',
    'ResourceError', 'PaymentFailedError', 'InsufficientBalanceError', 'ConfigurationError',
    'OverlapError', 'InvalidWindowError', 'UnknownPhaseError',
    # Phases
    'Phase', 'PhaseStatus', 'PhaseSchedule',
    # Purchase
    'PurchaseLimits', 'PurchasePlan', 'PurchaseReceipt', 'compute_quote_cost', 'compute_purchase',
    # Rewards
    'RewardConfig', 'BuyerAccount', 'ClaimPlan', 'ClaimReceipt', 'compute_reward', 'compute_claim',
    # Pool
    'Pool',
]

__version__ = '1.0.0'
