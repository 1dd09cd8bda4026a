"""
Database seeding script for initial portal accounts.

Creates an admin, a demo sales agent and a demo operations officer.
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.driver import Driver  # noqa: F401  (registers the table)
from backend.app.models.document import Document  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash
from sqlalchemy import select

SEED_ACCOUNTS = [
    ("admin@littleride.et", "admin123", "System Admin", UserRole.ADMIN),
    ("sales@littleride.et", "sales123", "Demo Sales Agent", UserRole.SALES_AGENT),
    ("ops@littleride.et", "ops123", "Demo Operations", UserRole.OPERATIONS),
]


async def seed_users():
    """
    Seed initial users with different roles.

    Skips everything if an admin account already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(select(User).where(User.role == UserRole.ADMIN))
        if result.scalars().first():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        for email, password, name, role in SEED_ACCOUNTS:
            db.add(User(
                email=email,
                hashed_password=get_password_hash(password),
                name=name,
                role=role,
                is_active=True,
            ))
            print(f"✅ Created {role.value} user ({email})")

        await db.commit()

        print("\n🎉 User seeding completed successfully!")
        print("\nSeeded users:")
        for email, password, _, role in SEED_ACCOUNTS:
            print(f"  - {role.value:<12} {email} / {password}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_users())
