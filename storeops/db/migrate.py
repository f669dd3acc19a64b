"""Create the local store tables."""

from __future__ import annotations

import sys

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from storeops.db.session import create_engine_from_env
from storeops.db.tables import metadata


def run_migrations(engine: Engine) -> None:
    """Create any missing tables; existing tables are left untouched."""
    metadata.create_all(engine, checkfirst=True)


def main() -> None:
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
