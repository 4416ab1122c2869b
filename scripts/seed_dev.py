import logging

from raffle.config import load_settings
from raffle.db.engine import get_sessionmaker, make_engine
from raffle.ledger import AccountLedger
from raffle.models import Base
from raffle.oracle.mock import VRFCoordinatorMock
from raffle.workflows import deploy_raffle, enter_raffle


def main() -> None:
    """Reset the development database and deploy a raffle with sample entries."""
    logging.basicConfig(level=logging.INFO)
    engine = make_engine()

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    settings = load_settings()
    ledger = AccountLedger()
    raffle = deploy_raffle(Session, settings, VRFCoordinatorMock(), ledger)

    with Session.begin() as session:
        for address in ("alice", "bob", "carol"):
            ledger.deposit(session, address, 0)

    for address in ("alice", "bob", "carol"):
        enter_raffle(raffle, address)

    snapshot = raffle.snapshot()
    print(
        f"Seeded {snapshot.name!r}: {snapshot.participant_count} entries, "
        f"pool={snapshot.pool_balance}, draw after {snapshot.interval_seconds}s"
    )


if __name__ == "__main__":
    main()
