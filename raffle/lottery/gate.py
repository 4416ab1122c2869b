"""Draw readiness predicate polled by automation triggers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..db.utils import as_utc
from ..models.round import RafflePhase


@dataclass(frozen=True)
class UpkeepStatus:
    """Snapshot of the four dimensions the draw gate looks at.

    Attributes
    ----------
    phase : RafflePhase
        Phase of the round when the snapshot was taken.
    elapsed_seconds : float
        Seconds since the round clock was last reset.
    interval_seconds : int
        Configured draw interval.
    participant_count : int
        Number of entries in the current round.
    balance : int
        Pooled stake available for payout.
    """

    phase: RafflePhase
    elapsed_seconds: float
    interval_seconds: int
    participant_count: int
    balance: int

    @property
    def interval_passed(self) -> bool:
        return self.elapsed_seconds > self.interval_seconds

    @property
    def is_open(self) -> bool:
        return self.phase is RafflePhase.OPEN

    @property
    def has_players(self) -> bool:
        return self.participant_count > 0

    @property
    def has_balance(self) -> bool:
        return self.balance > 0

    @property
    def ready(self) -> bool:
        """``True`` only when every gate condition holds."""
        return (
            self.interval_passed
            and self.has_players
            and self.has_balance
            and self.is_open
        )


def upkeep_status(
    *,
    phase: RafflePhase,
    pool_started_at: datetime,
    now: datetime,
    interval_seconds: int,
    participant_count: int,
    balance: int,
) -> UpkeepStatus:
    """Build an :class:`UpkeepStatus` from raw round values."""

    elapsed = (as_utc(now) - as_utc(pool_started_at)).total_seconds()
    return UpkeepStatus(
        phase=phase,
        elapsed_seconds=elapsed,
        interval_seconds=interval_seconds,
        participant_count=participant_count,
        balance=balance,
    )


__all__ = ["UpkeepStatus", "upkeep_status"]
