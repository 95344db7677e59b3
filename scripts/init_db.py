"""Script to initialize a development database without Alembic.

Creates every table from the model metadata and, with ``--seed``, one sample
location per tenant id given on the command line.
"""

import argparse
import asyncio

from sqlalchemy import insert, text

from cin_agenda.config import settings
from cin_agenda.database import create_engine
from cin_agenda.models import locations, metadata


async def init_db(seed_tenants: list[int]) -> None:
    """Create all tables and optionally seed locations."""
    engine = create_engine(settings)
    try:
        async with engine.begin() as conn:
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
            await conn.run_sync(metadata.create_all)

            for tenant_id in seed_tenants:
                await conn.execute(
                    insert(locations).values(
                        tenant_id=tenant_id,
                        name="Central",
                        max_appointments_per_slot=settings.default_max_appointments_per_slot,
                        working_hours=settings.default_working_hours,
                    )
                )
    finally:
        await engine.dispose()

    print("Database initialized successfully")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", type=int, nargs="*", default=[], metavar="TENANT_ID")
    args = parser.parse_args()
    asyncio.run(init_db(args.seed))
