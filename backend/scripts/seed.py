"""Seed script — creates staff users and the default approval rules.

Idempotent: checks for existing records before inserting.
Run: python scripts/seed.py   (from backend/)
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.seed import seed_default_approval_rules
from app.core.security import create_access_token
from app.db.session import AsyncSessionLocal
from app.models.user import User
from app.repositories.sql import SqlRepository

SEED_USERS = [
    ("admin@example.com", "Ada Admin", "admin"),
    ("finance@example.com", "Fin Controller", "finance"),
    ("inventory@example.com", "Ian Inventory", "inventory"),
    ("sales@example.com", "Sam Sales", "sales"),
]


# ─── Upsert helpers ───────────────────────────────────────────────────────────

async def _upsert_user(db: AsyncSession, email: str, name: str, role: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(email=email, name=name, role=role, is_active=True)
    db.add(user)
    await db.flush()
    print(f"  [new]  User {email} ({role})")
    return user


async def main() -> None:
    async with AsyncSessionLocal() as db:
        print("Users:")
        users = [await _upsert_user(db, *row) for row in SEED_USERS]
        await db.commit()

        print("Approval rules:")
        created = await seed_default_approval_rules(SqlRepository(db))
        print(f"  {created} rule(s) inserted")

    print("\nDev tokens (valid for the configured access-token lifetime):")
    for user in users:
        print(f"  {user.role:<10} {create_access_token(str(user.id), user.role)}")


if __name__ == "__main__":
    asyncio.run(main())
