"""
Delivery dispatch engine.

This package handles:
    - The broadcast state machine (start, expire, retry, escalate)
    - Acceptance arbitration between competing couriers
    - The ready queue and expiry sweeps
    - The orchestrator facade used by intake, couriers and admins
"""

from .acceptance import accept_job, check_acceptable
from .config import DispatchConfig, get_dispatch_config
from .exceptions import (
    AlreadyAcceptedError,
    BroadcastExpiredError,
    CourierNotEligibleError,
    CourierNotFoundError,
    DispatchError,
    DispatchValidationError,
    InvalidStateError,
    JobNotFoundError,
)
from .orchestrator import (
    DispatchOrchestrator,
    DispatchResult,
    DispatchStatus,
    accept_delivery,
    broadcast_stats,
    create_and_dispatch,
    get_active_for_courier,
    manual_assign,
    query_status,
)
from .schedulers import (
    ExpirySweepResult,
    ReadySweepResult,
    process_expired_broadcasts,
    process_ready_broadcasts,
)
from .state_machine import (
    BroadcastResult,
    escalate_to_manual,
    expire_broadcast,
    retry_broadcast,
    start_broadcast,
)

__all__ = [
    # Config
    "DispatchConfig",
    "get_dispatch_config",
    # State machine
    "BroadcastResult",
    "start_broadcast",
    "expire_broadcast",
    "retry_broadcast",
    "escalate_to_manual",
    # Acceptance
    "accept_job",
    "check_acceptable",
    # Sweeps
    "ReadySweepResult",
    "ExpirySweepResult",
    "process_ready_broadcasts",
    "process_expired_broadcasts",
    # Orchestrator
    "DispatchOrchestrator",
    "DispatchResult",
    "DispatchStatus",
    "create_and_dispatch",
    "accept_delivery",
    "manual_assign",
    "query_status",
    "get_active_for_courier",
    "broadcast_stats",
    # Exceptions
    "DispatchError",
    "JobNotFoundError",
    "CourierNotFoundError",
    "InvalidStateError",
    "AlreadyAcceptedError",
    "BroadcastExpiredError",
    "CourierNotEligibleError",
    "DispatchValidationError",
]
