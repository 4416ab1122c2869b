from typing import List, Optional, Tuple

from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from ..models import Base


def schema_status(engine: Engine) -> Tuple[Optional[str], List[str]]:
    """Return the applied Alembic revision and the raffle tables still missing.

    The revision is ``None`` for databases never stamped by Alembic, such as
    the ones built with ``Base.metadata.create_all`` in development.
    """
    with engine.connect() as connection:
        revision = MigrationContext.configure(connection).get_current_revision()
        existing = set(inspect(connection).get_table_names())
    missing = [name for name in Base.metadata.tables if name not in existing]
    return revision, missing
