from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from raffle.db.engine import make_engine
from raffle.db.schema import schema_status


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report_schema() -> int:
    """Print the applied revision and any raffle table the database lacks."""
    engine = make_engine()
    revision, missing = schema_status(engine)
    print(f"Raffle schema at revision {revision or '<none>'}")
    if missing:
        print("Missing raffle tables:", ", ".join(missing))
        return 1
    print("All raffle tables present")
    return 0


def main() -> int:
    """Apply migrations (default to head) and verify the raffle tables exist."""
    upgrade_db()
    return report_schema()


if __name__ == "__main__":
    raise SystemExit(main())
