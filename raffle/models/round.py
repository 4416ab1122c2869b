"""Database model for the lottery round state machine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    func,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE, UInt256

if TYPE_CHECKING:
    from .entry import RaffleEntry
    from .event import RaffleEvent


class RafflePhase(str, Enum):
    """Phase of a round; gates which operations are legal."""

    OPEN = "open"
    DRAWING = "drawing"


class RaffleRound(Base):
    """Singleton state of one deployed raffle.

    The row is mutated in place and never deleted: settlement resets it for
    the next round instead of creating a new one. Configuration columns are
    written once at deployment.
    """

    __tablename__ = "raffle_rounds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    """Deployment name, also used as the consumer address for the coordinator."""

    phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RafflePhase.OPEN.value
    )
    """Current phase (``"open"`` or ``"drawing"``)."""

    entrance_fee: Mapped[int] = mapped_column(UInt256, nullable=False)
    """Minimum stake accepted by ``enter``, in base units."""

    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    """Seconds that must strictly elapse after ``pool_started_at`` before a draw."""

    key_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    """Coordinator gas lane selecting the maximum price paid for the callback."""

    subscription_id: Mapped[int] = mapped_column(Integer, nullable=False)
    """Coordinator subscription funding the randomness requests."""

    callback_gas_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    """Resource budget granted to the fulfillment callback."""

    request_confirmations: Mapped[int] = mapped_column(Integer, nullable=False)
    """Minimum confirmation depth the coordinator waits before answering."""

    num_words: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Random values requested per draw; always one."""

    pool_balance: Mapped[int] = mapped_column(UInt256, nullable=False, default=0)
    """Sum of all stakes tendered since the last reset."""

    pool_started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Last time the round clock was reset."""

    pending_request_id: Mapped[Optional[str]] = mapped_column(
        String(78), nullable=True
    )
    """Opaque handle of the outstanding randomness request, if any."""

    draw_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """When the outstanding request was issued."""

    recent_winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Winner of the last settled round; overwritten each round."""

    recent_payout: Mapped[Optional[int]] = mapped_column(UInt256, nullable=True)
    """Amount paid to ``recent_winner``."""

    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Number of the round currently accepting entries or drawing."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["RaffleEntry"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="RaffleEntry.position",
    )
    events: Mapped[list["RaffleEvent"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="RaffleEvent.id",
    )

    __table_args__ = (
        CheckConstraint("phase IN ('open','drawing')", name="phase_enum"),
        CheckConstraint("interval_seconds >= 0", name="interval_non_negative"),
        CheckConstraint("num_words = 1", name="single_word"),
    )

    @property
    def raffle_phase(self) -> RafflePhase:
        return RafflePhase(self.phase)

    def participant_count(self, session: Session) -> int:
        """Return the number of entries in the current round."""
        from .entry import RaffleEntry

        return session.scalar(
            select(func.count(RaffleEntry.id)).where(RaffleEntry.round_id == self.id)
        ) or 0

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["RaffleRound"]:
        """Return the round deployed under ``name`` if it exists."""

        return session.scalar(select(cls).where(cls.name == name))

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleRound(id={self.id}, name={self.name!r}, phase={self.phase!r}, "
            f"round_number={self.round_number}, pool_balance={self.pool_balance})>"
        )


__all__ = ["RafflePhase", "RaffleRound"]
