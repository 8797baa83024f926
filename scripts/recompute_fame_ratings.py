#!/usr/bin/env python3
"""
Script to recompute the fame rating of every profile.
"""

import asyncio
import os
import sys

from sqlalchemy import select

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from apps.api.services.fame import FameService
from core.db import AsyncSessionLocal
from models.profile import Profile


async def recompute_all() -> None:
    """Recompute fame ratings, one commit per profile."""

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Profile.user_id).order_by(Profile.user_id))
        user_ids = result.scalars().all()

        if not user_ids:
            print("No profiles in the database")
            return

        fame = FameService(db)
        failed = 0
        for user_id in user_ids:
            try:
                rating = await fame.recalculate(user_id)
                print(f"   • user {user_id}: {rating}")
            except Exception as e:
                failed += 1
                await db.rollback()
                print(f"   ✗ user {user_id}: {e}")

        print(f"Recomputed {len(user_ids) - failed}/{len(user_ids)} profiles")


async def recompute_one(user_id: int) -> None:
    async with AsyncSessionLocal() as db:
        rating = await FameService(db).recalculate(user_id)
        print(f"User {user_id}: fame rating {rating}")


async def main():
    if len(sys.argv) > 1 and sys.argv[1] in ("-h", "--help"):
        print("Usage:")
        print(f"  {sys.argv[0]}             - recompute every profile")
        print(f"  {sys.argv[0]} <user_id>   - recompute one user")
        return

    if len(sys.argv) > 1:
        await recompute_one(int(sys.argv[1]))
    else:
        await recompute_all()


if __name__ == "__main__":
    # Load environment variables
    from dotenv import load_dotenv

    load_dotenv()

    asyncio.run(main())
