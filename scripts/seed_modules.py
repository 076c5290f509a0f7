"""
Seed script to populate the default module catalog.

Run this script after database initialization to create the modules that
companies can be granted. Existing modules (matched by slug) are left as
they are.

Usage:
    uv run python -m scripts.seed_modules
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.modules.models import Module
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_MODULES = [
    ("ai-agent", "AI Agent", "AI assistant with document context"),
    ("clients", "Clients", "Client records and custom fields"),
    ("tasks", "Tasks", "Task boards and assignments"),
    ("time-tracking", "Time Tracking", "Timers and time entries"),
    ("settlements", "Settlements", "Monthly client settlements"),
    ("offers", "Offers", "Offer templates and sent offers"),
    ("zus", "ZUS", "Social insurance contributions"),
    ("email-client", "Email Client", "Company mailbox"),
]


async def seed_modules(db: AsyncSession) -> dict[str, Module]:
    """
    Create default modules.

    Returns:
        Dictionary mapping slugs to Module objects
    """
    log.info("Creating default modules...")
    modules_map = {}

    for slug, name, description in DEFAULT_MODULES:
        result = await db.execute(select(Module).where(Module.slug == slug))
        existing = result.scalars().first()

        if existing:
            log.debug("Module '%s' already exists, skipping", slug)
            modules_map[slug] = existing
            continue

        module = Module(slug=slug, name=name, description=description)
        db.add(module)
        modules_map[slug] = module
        log.info("Created module: %s", slug)

    await db.commit()
    log.info("%d modules in catalog", len(modules_map))
    return modules_map


async def main():
    log.info("Starting module seeding...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await seed_modules(db)
        except Exception as e:
            log.error("Error seeding modules: %s", e, exc_info=True)
            await db.rollback()
            raise

    log.info("Module seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
