"""Settlement ledger paying raffle winners."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.orm import Session

from .models import Account

logger = logging.getLogger(__name__)


class PayoutLedger(Protocol):
    """Moves funds out of the pool.

    ``transfer`` runs inside the settlement transaction and reports success
    with its return value. Returning ``False`` makes the engine roll the whole
    settlement back.
    """

    def transfer(self, session: Session, recipient: str, amount: int) -> bool: ...


class AccountLedger:
    """Ledger backed by the :class:`~raffle.models.Account` table."""

    def _get_or_create(self, session: Session, address: str) -> Account:
        account = Account.get_by_address(session, address)
        if account is None:
            account = Account(address=address, balance=0, accepts_payments=True)
            session.add(account)
            session.flush()
        return account

    def balance_of(self, session: Session, address: str) -> int:
        account = Account.get_by_address(session, address)
        return 0 if account is None else account.balance

    def deposit(self, session: Session, address: str, amount: int) -> Account:
        """Credit ``amount`` to ``address`` outside of any raffle payout."""
        if amount < 0:
            raise ValueError("amount must not be negative")
        account = self._get_or_create(session, address)
        account.balance = account.balance + amount
        session.flush()
        return account

    def set_accepts_payments(
        self, session: Session, address: str, accepts: bool
    ) -> Account:
        account = self._get_or_create(session, address)
        account.accepts_payments = accepts
        session.flush()
        return account

    def transfer(self, session: Session, recipient: str, amount: int) -> bool:
        account = self._get_or_create(session, recipient)
        if not account.accepts_payments:
            logger.warning(f"{recipient} does not accept payments")
            return False
        account.balance = account.balance + amount
        session.flush()
        logger.debug(f"Credited {amount} to {recipient}")
        return True


__all__ = ["AccountLedger", "PayoutLedger"]
