"""Core state machine of the raffle."""

from .engine import RaffleEngine, RandomnessCoordinator, RoundSnapshot
from .errors import (
    GracePeriodNotElapsed,
    IndexOutOfRange,
    InputRejected,
    InsufficientStake,
    MalformedRandomness,
    NoDrawPending,
    PayoutTransferFailed,
    PhaseConflict,
    ProtocolViolation,
    RaffleError,
    RoundNotOpen,
    UnknownOrStaleRequest,
    UpkeepNotNeeded,
)
from .events import (
    DRAW_REQUESTED,
    DRAW_RESET,
    ENTERED,
    WINNER_PICKED,
    EventBus,
    Notification,
)
from .gate import UpkeepStatus, upkeep_status
from .selection import winner_index

__all__ = [
    "DRAW_REQUESTED",
    "DRAW_RESET",
    "ENTERED",
    "WINNER_PICKED",
    "EventBus",
    "GracePeriodNotElapsed",
    "IndexOutOfRange",
    "InputRejected",
    "InsufficientStake",
    "MalformedRandomness",
    "NoDrawPending",
    "Notification",
    "PayoutTransferFailed",
    "PhaseConflict",
    "ProtocolViolation",
    "RaffleEngine",
    "RaffleError",
    "RandomnessCoordinator",
    "RoundNotOpen",
    "RoundSnapshot",
    "UnknownOrStaleRequest",
    "UpkeepNotNeeded",
    "UpkeepStatus",
    "upkeep_status",
    "winner_index",
]
