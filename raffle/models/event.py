from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .round import RaffleRound


class RaffleEvent(Base):
    """Persisted notification emitted by the raffle.

    This table is the only history the raffle keeps; past winners can only be
    recovered from ``WinnerPicked`` rows.
    """

    __tablename__ = "raffle_events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffle_rounds.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    emitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    round: Mapped["RaffleRound"] = relationship(back_populates="events")

    __table_args__ = (Index("ix_raffle_events_round_name", "round_id", "name"),)

    @classmethod
    def for_round(
        cls, session: Session, round_id: int, name: Optional[str] = None
    ) -> list["RaffleEvent"]:
        """Return events of ``round_id`` in emission order, optionally by name."""
        stmt = select(cls).where(cls.round_id == round_id)
        if name is not None:
            stmt = stmt.where(cls.name == name)
        return list(session.scalars(stmt.order_by(cls.id.asc())).all())

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<RaffleEvent(id={self.id}, name={self.name!r}, payload={self.payload})>"
