from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE, UInt256

if TYPE_CHECKING:
    from .round import RaffleRound


class RaffleEntry(Base):
    """One paid entry in the current round.

    Entries are ordered by ``position`` (entry order) and the same participant
    may appear several times. Settlement deletes every entry of the round.
    """

    __tablename__ = "raffle_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffle_rounds.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    participant: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(UInt256, nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    round: Mapped["RaffleRound"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("round_id", "position", name="uq_raffle_entry_position"),
    )

    @classmethod
    def at_position(
        cls, session: Session, round_id: int, position: int
    ) -> Optional["RaffleEntry"]:
        """Return the entry stored at ``position`` for ``round_id``."""
        return session.scalar(
            select(cls).where(cls.round_id == round_id, cls.position == position)
        )

    @classmethod
    def next_position(cls, session: Session, round_id: int) -> int:
        last = session.scalar(
            select(func.max(cls.position)).where(cls.round_id == round_id)
        )
        return 0 if last is None else last + 1

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleEntry(round_id={self.round_id}, position={self.position}, "
            f"participant={self.participant!r}, amount={self.amount})>"
        )
