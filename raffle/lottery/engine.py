"""State machine driving a recurring raffle round."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, sessionmaker

from ..db.utils import as_utc
from ..ledger import AccountLedger, PayoutLedger
from ..models import RaffleEntry, RaffleEvent, RafflePhase, RaffleRound
from .errors import (
    GracePeriodNotElapsed,
    IndexOutOfRange,
    InsufficientStake,
    NoDrawPending,
    PayoutTransferFailed,
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

logger = logging.getLogger(__name__)

RequestId = Union[int, str]


class RandomnessCoordinator(Protocol):
    """Outbound half of the randomness handshake.

    The coordinator answers later by calling
    :meth:`RaffleEngine.fulfill_random_words` with the returned handle.
    """

    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str,
    ) -> RequestId: ...


@dataclass(frozen=True)
class RoundSnapshot:
    """Read-only view of a round at one point in time."""

    name: str
    phase: RafflePhase
    round_number: int
    participant_count: int
    pool_balance: int
    entrance_fee: int
    interval_seconds: int
    pool_started_at: datetime
    pending_request_id: Optional[str]
    recent_winner: Optional[str]
    recent_payout: Optional[int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_participant(participant: str) -> str:
    if not isinstance(participant, str):
        raise TypeError("participant must be a string")
    normalized = participant.strip()
    if not normalized:
        raise ValueError("participant must not be empty")
    return normalized


def _normalize_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError("amount must be an integer number of base units")
    if amount < 0:
        raise ValueError("amount must not be negative")
    return amount


class RaffleEngine:
    """Serialize every operation on one persisted :class:`RaffleRound`.

    Each mutating call holds the engine lock and runs inside a single
    SQLAlchemy transaction, so ``enter``, ``start_draw`` and the randomness
    callback appear to execute atomically and in a total order. Calls made
    from the payout ledger while a settlement is in flight (same thread) join
    that transaction instead of opening a new one.

    Several engines, in one process or many, may drive the same round. Every
    phase transition starts with a conditional ``UPDATE`` on the round row
    that only matches the expected phase, and checks its row count. The
    database thus admits one draw request and one settlement per round no
    matter how many callers race.

    ``start_draw`` keeps the round locked while the coordinator accepts the
    request, so other writers wait for at most the coordinator's submission
    timeout.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        round_id: int,
        coordinator: RandomnessCoordinator,
        ledger: Optional[PayoutLedger] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        """Bind an engine to a deployed round.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory producing sessions for the raffle database.
        round_id : int
            Primary key of the :class:`RaffleRound` to drive.
        coordinator : RandomnessCoordinator
            Randomness provider receiving draw requests.
        ledger : Optional[PayoutLedger], default: None
            Settlement ledger paying winners. Defaults to :class:`AccountLedger`.
        clock : Optional[Callable[[], datetime]], default: None
            Source of the current UTC time. Tests inject a controllable clock.
        events : Optional[EventBus], default: None
            Bus receiving committed notifications.
        """

        self._Session = session_factory
        self.round_id = round_id
        self.coordinator = coordinator
        self.ledger = ledger or AccountLedger()
        self.events = events or EventBus()
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._local = threading.local()

    # -------- transaction plumbing --------
    @contextmanager
    def _transaction(self) -> Iterator[Tuple[Session, List[Notification]]]:
        active = getattr(self._local, "scope", None)
        if active is not None:
            yield active
            return

        with self._lock:
            notifications: List[Notification] = []
            with self._Session.begin() as session:
                self._local.scope = (session, notifications)
                try:
                    yield session, notifications
                finally:
                    self._local.scope = None
        self.events.publish(notifications)

    @contextmanager
    def _read(self) -> Iterator[Session]:
        active = getattr(self._local, "scope", None)
        if active is not None:
            yield active[0]
            return

        with self._lock:
            with self._Session() as session:
                yield session

    def _load_round(self, session: Session, *, for_update: bool = False) -> RaffleRound:
        stmt = select(RaffleRound).where(RaffleRound.id == self.round_id)
        if for_update:
            # Re-read the row after a claim; the identity map may hold stale values.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        round_ = session.scalar(stmt)
        if round_ is None:
            raise LookupError(f"Raffle round {self.round_id} does not exist")
        return round_

    def _claim(self, session: Session, phase: RafflePhase) -> bool:
        """Take the round's write lock, provided it is still in ``phase``.

        The conditional ``UPDATE`` is the first write of the transaction, so
        it blocks until concurrent writers on other engines or processes have
        committed and is then evaluated against their result. SQLite has no
        row locks and ignores ``FOR UPDATE``; this statement is what
        serializes callers there.
        """
        result = session.execute(
            update(RaffleRound)
            .where(RaffleRound.id == self.round_id, RaffleRound.phase == phase.value)
            .values(phase=phase.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _current_phase(self, session: Session) -> str:
        phase = session.scalar(
            select(RaffleRound.phase).where(RaffleRound.id == self.round_id)
        )
        if phase is None:
            raise LookupError(f"Raffle round {self.round_id} does not exist")
        return phase

    def _emit(
        self,
        session: Session,
        notifications: List[Notification],
        round_: RaffleRound,
        name: str,
        payload: Dict[str, Any],
        *,
        round_number: Optional[int] = None,
    ) -> None:
        number = round_.round_number if round_number is None else round_number
        session.add(
            RaffleEvent(
                round_id=round_.id,
                round_number=number,
                name=name,
                payload=payload,
                emitted_at=self._clock(),
            )
        )
        notifications.append(
            Notification(name=name, round_number=number, payload=dict(payload))
        )

    def _status(self, session: Session, round_: RaffleRound) -> UpkeepStatus:
        return upkeep_status(
            phase=round_.raffle_phase,
            pool_started_at=round_.pool_started_at,
            now=self._clock(),
            interval_seconds=round_.interval_seconds,
            participant_count=round_.participant_count(session),
            balance=round_.pool_balance,
        )

    # -------- entry ledger --------
    def enter(self, participant: str, amount: int) -> int:
        """Enter ``participant`` into the current round.

        Parameters
        ----------
        participant : str
            Identity of the entrant. Repeat entries are allowed and counted
            separately.
        amount : int
            Tendered stake in base units. Anything above the entrance fee is
            kept in the pool and never refunded.

        Returns
        -------
        int
            Zero-based position of the new entry.

        Raises
        ------
        InsufficientStake
            If ``amount`` is below the entrance fee.
        RoundNotOpen
            If a draw is in flight.
        """

        participant = _normalize_participant(participant)
        amount = _normalize_amount(amount)

        with self._transaction() as (session, notifications):
            # The fee is fixed at deployment, so it can be checked before the claim.
            entrance_fee = self._load_round(session).entrance_fee
            if amount < entrance_fee:
                raise InsufficientStake(amount, entrance_fee)
            if not self._claim(session, RafflePhase.OPEN):
                raise RoundNotOpen(self._current_phase(session))
            round_ = self._load_round(session, for_update=True)

            position = RaffleEntry.next_position(session, round_.id)
            session.add(
                RaffleEntry(
                    round_id=round_.id,
                    position=position,
                    participant=participant,
                    amount=amount,
                    entered_at=self._clock(),
                )
            )
            round_.pool_balance = round_.pool_balance + amount
            self._emit(session, notifications, round_, ENTERED, {"participant": participant})
            session.flush()

        logger.info(f"{participant} entered round at position {position}")
        return position

    # -------- automation gate --------
    def check_upkeep(self) -> UpkeepStatus:
        """Return the draw gate together with the state it was computed from."""
        with self._read() as session:
            round_ = self._load_round(session)
            return self._status(session, round_)

    def check_draw_ready(self) -> bool:
        """Return whether a draw may start right now.

        The answer is advisory: :meth:`start_draw` evaluates the gate again
        inside its own transaction.
        """
        return self.check_upkeep().ready

    # -------- randomness handshake --------
    def start_draw(self) -> str:
        """Close entries and request one random word from the coordinator.

        Returns
        -------
        str
            Opaque handle of the request, as stored in ``pending_request_id``.

        Raises
        ------
        RoundNotOpen
            If another caller already started the draw.
        UpkeepNotNeeded
            If the gate is false at call time. Carries the balance,
            participant count and phase observed.
        """

        with self._transaction() as (session, notifications):
            if not self._claim(session, RafflePhase.OPEN):
                raise RoundNotOpen(self._current_phase(session))
            round_ = self._load_round(session, for_update=True)
            status = self._status(session, round_)
            if not status.ready:
                raise UpkeepNotNeeded(
                    status.balance, status.participant_count, status.phase.value
                )

            round_.phase = RafflePhase.DRAWING.value
            round_.draw_requested_at = self._clock()
            session.flush()

            # A failing request rolls the phase flip back with the transaction.
            request_id = str(
                self.coordinator.request_random_words(
                    key_hash=round_.key_hash,
                    subscription_id=round_.subscription_id,
                    request_confirmations=round_.request_confirmations,
                    callback_gas_limit=round_.callback_gas_limit,
                    num_words=round_.num_words,
                    consumer=round_.name,
                )
            )
            round_.pending_request_id = request_id
            self._emit(
                session, notifications, round_, DRAW_REQUESTED, {"request_id": request_id}
            )
            session.flush()
            participant_count = status.participant_count

        logger.info(
            f"Draw requested for {participant_count} entries (request {request_id})"
        )
        return request_id

    def fulfill_random_words(
        self, request_id: RequestId, random_words: Sequence[int]
    ) -> str:
        """Settle the round with the random words delivered for ``request_id``.

        The winner is the entry at ``random_words[0] % participant_count``.
        All round state is reset and flushed before the pool is handed to the
        ledger, so anything the ledger calls back into sees the next round.

        Returns
        -------
        str
            The winner's identity.

        Raises
        ------
        UnknownOrStaleRequest
            If no draw is pending or ``request_id`` is not the pending handle.
        MalformedRandomness
            If no usable random word was delivered.
        PayoutTransferFailed
            If the ledger refuses the transfer. The whole settlement is rolled
            back and the round keeps waiting on the same request.
        """

        request_key = str(request_id)
        words = list(random_words)

        with self._transaction() as (session, notifications):
            claimed = self._claim(session, RafflePhase.DRAWING)
            round_ = self._load_round(session, for_update=claimed)
            pending = round_.pending_request_id
            if not claimed or pending != request_key:
                logger.warning(
                    f"Rejected randomness for request {request_key} (pending={pending})"
                )
                raise UnknownOrStaleRequest(request_key, pending)

            count = round_.participant_count(session)
            index = winner_index(words, count)
            entry = RaffleEntry.at_position(session, round_.id, index)
            if entry is None:
                raise LookupError(f"No entry stored at position {index}")
            winner = entry.participant
            payout = round_.pool_balance
            settled_round = round_.round_number

            round_.recent_winner = winner
            round_.recent_payout = payout
            round_.phase = RafflePhase.OPEN.value
            round_.pending_request_id = None
            round_.draw_requested_at = None
            session.execute(delete(RaffleEntry).where(RaffleEntry.round_id == round_.id))
            round_.pool_started_at = self._clock()
            round_.pool_balance = 0
            round_.round_number = settled_round + 1
            session.flush()

            if not self.ledger.transfer(session, winner, payout):
                logger.error(
                    f"Payout of {payout} to {winner} failed; round {settled_round} "
                    f"stays pending on request {request_key}"
                )
                raise PayoutTransferFailed(winner, payout)

            self._emit(
                session,
                notifications,
                round_,
                WINNER_PICKED,
                {"winner": winner, "amount": payout, "request_id": request_key},
                round_number=settled_round,
            )
            session.flush()

        logger.info(f"Round {settled_round} won by {winner} ({payout} paid out)")
        return winner

    def reset_stalled_draw(self, grace_period: Union[float, timedelta]) -> str:
        """Reopen a round whose randomness never arrived.

        Entries and pool are kept for the next draw. The abandoned handle is
        cleared, so a late callback for it is rejected as stale and cannot
        pay out.

        Parameters
        ----------
        grace_period : Union[float, timedelta]
            Minimum time (seconds or timedelta) the request must have been
            pending for.

        Returns
        -------
        str
            The abandoned request handle.

        Raises
        ------
        NoDrawPending
            If the round is not drawing.
        GracePeriodNotElapsed
            If the request is younger than ``grace_period``.
        """

        grace = (
            grace_period.total_seconds()
            if isinstance(grace_period, timedelta)
            else float(grace_period)
        )

        with self._transaction() as (session, notifications):
            if not self._claim(session, RafflePhase.DRAWING):
                raise NoDrawPending(self._current_phase(session))
            round_ = self._load_round(session, for_update=True)
            requested_at = round_.draw_requested_at
            elapsed = (
                (as_utc(self._clock()) - as_utc(requested_at)).total_seconds()
                if requested_at is not None
                else float("inf")
            )
            if elapsed <= grace:
                raise GracePeriodNotElapsed(elapsed, grace)

            stale = round_.pending_request_id or ""
            round_.phase = RafflePhase.OPEN.value
            round_.pending_request_id = None
            round_.draw_requested_at = None
            self._emit(session, notifications, round_, DRAW_RESET, {"request_id": stale})
            session.flush()

        logger.warning(f"Abandoned randomness request {stale} after {elapsed:.0f}s")
        return stale

    # -------- query surface --------
    @property
    def address(self) -> str:
        """Identity the coordinator uses to route callbacks to this round."""
        with self._read() as session:
            return self._load_round(session).name

    def snapshot(self) -> RoundSnapshot:
        with self._read() as session:
            round_ = self._load_round(session)
            return RoundSnapshot(
                name=round_.name,
                phase=round_.raffle_phase,
                round_number=round_.round_number,
                participant_count=round_.participant_count(session),
                pool_balance=round_.pool_balance,
                entrance_fee=round_.entrance_fee,
                interval_seconds=round_.interval_seconds,
                pool_started_at=as_utc(round_.pool_started_at),
                pending_request_id=round_.pending_request_id,
                recent_winner=round_.recent_winner,
                recent_payout=round_.recent_payout,
            )

    def get_phase(self) -> RafflePhase:
        return self.snapshot().phase

    def get_participant_count(self) -> int:
        return self.snapshot().participant_count

    def get_participant(self, index: int) -> str:
        """Return the participant who made entry number ``index`` this round."""
        with self._read() as session:
            round_ = self._load_round(session)
            count = round_.participant_count(session)
            if index < 0 or index >= count:
                raise IndexOutOfRange(index, count)
            entry = RaffleEntry.at_position(session, round_.id, index)
            if entry is None:
                raise IndexOutOfRange(index, count)
            return entry.participant

    def get_recent_winner(self) -> Optional[str]:
        return self.snapshot().recent_winner

    def get_recent_payout(self) -> Optional[int]:
        return self.snapshot().recent_payout

    def get_interval(self) -> int:
        return self.snapshot().interval_seconds

    def get_entrance_fee(self) -> int:
        return self.snapshot().entrance_fee

    def get_last_timestamp(self) -> datetime:
        return self.snapshot().pool_started_at

    def get_pool_balance(self) -> int:
        return self.snapshot().pool_balance

    def get_pending_request_id(self) -> Optional[str]:
        return self.snapshot().pending_request_id

    def get_round_number(self) -> int:
        return self.snapshot().round_number

    def get_num_words(self) -> int:
        with self._read() as session:
            return self._load_round(session).num_words

    def get_request_confirmations(self) -> int:
        with self._read() as session:
            return self._load_round(session).request_confirmations

    def get_events(self, name: Optional[str] = None) -> List[RaffleEvent]:
        """Return persisted notifications, oldest first."""
        with self._read() as session:
            return RaffleEvent.for_round(session, self.round_id, name)


__all__ = [
    "RaffleEngine",
    "RandomnessCoordinator",
    "RequestId",
    "RoundSnapshot",
]
