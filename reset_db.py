import asyncio

from shared.db import engine, Base
import services.catalog.models
import services.directory.models
import services.identity.models
import services.issuance.models


async def reset_db():
    async with engine.begin() as conn:
        print("🗑️  Dropping tables...")
        await conn.run_sync(Base.metadata.drop_all)
        print("🔧 Recreating tables...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("✅ Database reset. Run create_db.py to seed it again.")


if __name__ == "__main__":
    asyncio.run(reset_db())
