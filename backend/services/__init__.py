"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the WebSocket and task layers.

Modules:
    - matching: Courier proximity search and offer fan-out
    - dispatch: Broadcast state machine, acceptance, sweeps and orchestration
"""

# Expose commonly used functions at package level
from .matching import (
    find_nearby_couriers,
    broadcast_to_couriers,
)
from .dispatch import (
    DispatchOrchestrator,
    create_and_dispatch,
    accept_delivery,
    manual_assign,
    query_status,
    get_active_for_courier,
    broadcast_stats,
    process_ready_broadcasts,
    process_expired_broadcasts,
    DispatchError,
    JobNotFoundError,
    CourierNotFoundError,
    InvalidStateError,
    AlreadyAcceptedError,
    BroadcastExpiredError,
    CourierNotEligibleError,
    DispatchValidationError,
)

__all__ = [
    # Matching
    "find_nearby_couriers",
    "broadcast_to_couriers",
    # Dispatch
    "DispatchOrchestrator",
    "create_and_dispatch",
    "accept_delivery",
    "manual_assign",
    "query_status",
    "get_active_for_courier",
    "broadcast_stats",
    "process_ready_broadcasts",
    "process_expired_broadcasts",
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
