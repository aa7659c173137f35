"""
Schema rebuild helpers.

    python -m db.init_db           # drop and recreate every table
    python -m db.init_db --seed    # same, then load the demo data
"""

import argparse
import logging
import os

from sqlalchemy import inspect, text

from db.db_base import SessionLocal, engine
from db.models import Base

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "y", "on"}


def drop_all_tables() -> None:
    """
    Postgres drops every table in the database with CASCADE, so tables left
    over from an older schema cannot block the rebuild. Other backends only
    drop the tables the models know about.
    """
    if engine.dialect.name != "postgresql":
        Base.metadata.drop_all(bind=engine)
        return

    existing = inspect(engine).get_table_names()
    with engine.begin() as conn:
        for name in existing:
            conn.execute(text(f'DROP TABLE IF EXISTS "{name}" CASCADE'))
    logger.info(f"Dropped {len(existing)} tables")


def reset_schema(seed: bool = False) -> None:
    drop_all_tables()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Created {len(Base.metadata.tables)} tables")

    if seed:
        from db.seed_dummy_data import seed as load_demo_data

        with SessionLocal() as db:
            load_demo_data(db)


def maybe_init_schema() -> bool:
    """Rebuild the schema at startup when AUTO_CREATE_TABLES is truthy."""
    if (os.getenv("AUTO_CREATE_TABLES") or "").strip().lower() not in TRUTHY:
        return False
    reset_schema()
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Drop and recreate the Petagri schema")
    parser.add_argument("--seed", action="store_true", help="load demo accounts, farm and store afterwards")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    reset_schema(seed=args.seed)
