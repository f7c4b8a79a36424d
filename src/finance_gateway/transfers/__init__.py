"""Transfer lifecycle: state machine and idempotency records."""

from finance_gateway.transfers.sql_store import SqlTransferStore
from finance_gateway.transfers.state_machine import (
    InvalidTransitionError,
    TransferState,
    TransferStateMachine,
)
from finance_gateway.transfers.store import (
    InMemoryTransferStore,
    TransferAlreadyRecorded,
    TransferRecord,
    TransferStore,
)

__all__ = [
    "TransferState",
    "TransferStateMachine",
    "InvalidTransitionError",
    "TransferRecord",
    "TransferStore",
    "TransferAlreadyRecorded",
    "InMemoryTransferStore",
    "SqlTransferStore",
]
