#!/usr/bin/env python
"""Create a CRM user if needed and print a bearer token for the API."""

import argparse
import asyncio
import os
import sys
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.auth import create_access_token
from app.persistence.database import AsyncSessionLocal
from app.persistence.repositories.user_repository import UserRepository


async def issue_token(email: str, days: int) -> None:
    """Ensure the user exists, then print a signed access token."""
    async with AsyncSessionLocal() as session:
        repo = UserRepository(session)
        user = await repo.get_by_email(email)
        if user is None:
            user = await repo.create(email=email, is_active=True)
            print(f"Created user {user.id}: {email}")
        else:
            print(f"Using existing user {user.id}: {email}")

    token = create_access_token({"sub": str(user.id)}, expires_delta=timedelta(days=days))
    print(f"Bearer token (valid {days} days):")
    print(token)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email")
    parser.add_argument("--days", type=int, default=7)
    args = parser.parse_args()
    asyncio.run(issue_token(args.email, args.days))
