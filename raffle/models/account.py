from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from .base import Base
from .id_type import ID_TYPE, UInt256


class Account(Base):
    """Balance held by an address in the development settlement ledger."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    balance: Mapped[int] = mapped_column(UInt256, nullable=False, default=0)
    accepts_payments: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    """``False`` simulates a recipient that rejects incoming transfers."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @validates("address")
    def _normalize_address(self, _key: str, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("address must not be empty")
        return normalized

    @classmethod
    def get_by_address(cls, session: Session, address: str) -> Optional["Account"]:
        """Get an account by its address."""
        return session.scalar(select(cls).where(cls.address == address.strip()))

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Account(address={self.address!r}, balance={self.balance})>"
