"""
Script to grant (or revoke) the application admin role for local setups.

The user row is created when it does not exist yet, so a fresh database can
be bootstrapped with its first administrator.
"""

import asyncio
import argparse
import os
import sys
from typing import Optional

# Add the project root to sys.path to allow importing from 'app'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from app.core.database import engine, get_session_context
from app.services import users as user_service
from teamspace_shared.schemas.common import AppRole


async def grant(user_id: str, email: Optional[str], revoke: bool) -> None:
    async with get_session_context() as session:
        user, created = await user_service.get_or_create_user(user_id, session, email=email)
        if created:
            print(f"Created user {user_id}.")

        role = None if revoke else AppRole.ADMIN
        await user_service.set_app_role(user_id, role, actor_id="cli", session=session)

    await engine.dispose()
    print(f"{'Revoked' if revoke else 'Granted'} application admin for {user_id}.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Grant the application admin role.")
    parser.add_argument("--user-id", required=True, help="Identity-provider user id")
    parser.add_argument("--email", help="Email address, used when the user is created")
    parser.add_argument("--revoke", action="store_true", help="Clear the role instead")

    args = parser.parse_args()

    asyncio.run(grant(args.user_id, args.email, args.revoke))
