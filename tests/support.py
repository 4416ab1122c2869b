from datetime import datetime, timedelta, timezone
from typing import Optional

from raffle.config import RaffleSettings, parse_ether
from raffle.db.engine import get_sessionmaker, make_engine
from raffle.models import Base

FEE = parse_ether("0.25")
INTERVAL = 30
GAS_LANE = "0x79d3d8832d904592c0bf9818b621522c988bb8b0c05cdc3b15aea1b6e8db0c15"


class FakeClock:
    """Controllable UTC clock standing in for block time."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_database():
    engine = make_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine, get_sessionmaker(engine)


def make_settings(
    *,
    name: str = "raffle",
    network: str = "hardhat",
    entrance_fee: int = FEE,
    interval: int = INTERVAL,
) -> RaffleSettings:
    return RaffleSettings(
        name=name,
        network=network,
        entrance_fee=entrance_fee,
        interval=interval,
        key_hash=GAS_LANE,
        subscription_id=0,
        callback_gas_limit=500000,
    )
