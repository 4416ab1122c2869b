import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from .config import NUM_WORDS, VRF_FUND_AMOUNT, RaffleSettings
from .ledger import PayoutLedger
from .lottery import (
    EventBus,
    RaffleEngine,
    RandomnessCoordinator,
    RoundNotOpen,
    UpkeepNotNeeded,
)
from .models import RafflePhase, RaffleRound
from .oracle.mock import VRFCoordinatorMock

logger = logging.getLogger(__name__)


def deploy_raffle(
    Session: sessionmaker,
    settings: RaffleSettings,
    coordinator: RandomnessCoordinator,
    ledger: Optional[PayoutLedger] = None,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    events: Optional[EventBus] = None,
) -> RaffleEngine:
    """Persist a new raffle round and return the engine driving it.

    The workflow performs the following steps:

    1. On development networks backed by :class:`VRFCoordinatorMock`, create
       a coordinator subscription and fund it with ``VRF_FUND_AMOUNT``.
    2. Store the :class:`RaffleRound` row in the ``OPEN`` phase with its
       clock started at deployment time.
    3. Build the :class:`RaffleEngine` and, on development networks, register
       it as a consumer of the subscription.

    Parameters
    ----------
    Session : sessionmaker
        Session factory for the raffle database.
    settings : RaffleSettings
        Immutable deployment configuration.
    coordinator : RandomnessCoordinator
        Randomness provider the raffle requests draws from.
    ledger : Optional[PayoutLedger]
        Settlement ledger paying winners. Defaults to the account ledger.
    clock : Optional[Callable[[], datetime]]
        Source of the current UTC time.
    events : Optional[EventBus]
        Bus receiving the raffle's notifications.

    Returns
    -------
    RaffleEngine
        Engine bound to the newly stored round.

    Raises
    ------
    ValueError
        If a raffle with the same name is already deployed.
    """

    now = (clock or (lambda: datetime.now(timezone.utc)))()
    use_mock = settings.is_development and isinstance(coordinator, VRFCoordinatorMock)

    with Session.begin() as session:
        if RaffleRound.get_by_name(session, settings.name) is not None:
            raise ValueError(f"A raffle named {settings.name!r} is already deployed")

        subscription_id = settings.subscription_id
        if use_mock:
            subscription_id = coordinator.create_subscription(owner=settings.name)
            coordinator.fund_subscription(subscription_id, VRF_FUND_AMOUNT)

        round_ = RaffleRound(
            name=settings.name,
            phase=RafflePhase.OPEN.value,
            entrance_fee=settings.entrance_fee,
            interval_seconds=settings.interval,
            key_hash=settings.key_hash,
            subscription_id=subscription_id,
            callback_gas_limit=settings.callback_gas_limit,
            request_confirmations=settings.request_confirmations,
            num_words=NUM_WORDS,
            pool_balance=0,
            pool_started_at=now,
            round_number=1,
            created_at=now,
        )
        session.add(round_)
        session.flush()
        round_id = round_.id

    engine = RaffleEngine(
        Session, round_id, coordinator, ledger, clock=clock, events=events
    )
    if use_mock:
        coordinator.add_consumer(subscription_id, engine)

    logger.info(
        f"Deployed raffle {settings.name!r} on {settings.network} "
        f"(fee={settings.entrance_fee}, interval={settings.interval}s)"
    )
    return engine


def load_raffle(
    Session: sessionmaker,
    name: str,
    coordinator: RandomnessCoordinator,
    ledger: Optional[PayoutLedger] = None,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    events: Optional[EventBus] = None,
) -> RaffleEngine:
    """Return an engine for the raffle previously deployed as ``name``."""

    with Session() as session:
        round_ = RaffleRound.get_by_name(session, name)
        if round_ is None:
            raise LookupError(f"No raffle named {name!r} is deployed")
        round_id = round_.id

    return RaffleEngine(Session, round_id, coordinator, ledger, clock=clock, events=events)


def enter_raffle(
    engine: RaffleEngine, participant: str, amount: Optional[int] = None
) -> int:
    """Enter ``participant`` paying ``amount`` or, when omitted, the entrance fee."""

    if amount is None:
        amount = engine.get_entrance_fee()
    return engine.enter(participant, amount)


def perform_upkeep(engine: RaffleEngine) -> Optional[str]:
    """Start a draw if the gate allows it.

    This is the body an automation trigger runs on every poll. Losing a race
    against another trigger is expected and reported as ``None``.

    Returns
    -------
    Optional[str]
        Handle of the issued randomness request, or ``None`` when no draw
        was started.
    """

    if not engine.check_draw_ready():
        return None
    try:
        return engine.start_draw()
    except (UpkeepNotNeeded, RoundNotOpen) as exc:
        logger.warning(f"Upkeep skipped: {exc}")
        return None


def run_upkeep_loop(
    engine: RaffleEngine,
    *,
    poll_seconds: float,
    stop_event: threading.Event,
    max_polls: Optional[int] = None,
) -> int:
    """Poll :func:`perform_upkeep` until ``stop_event`` is set.

    Returns the number of draws started.
    """

    started = 0
    polls = 0
    while not stop_event.is_set():
        if perform_upkeep(engine) is not None:
            started += 1
        polls += 1
        if max_polls is not None and polls >= max_polls:
            break
        stop_event.wait(poll_seconds)
    return started
