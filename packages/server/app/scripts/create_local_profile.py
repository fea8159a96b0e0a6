"""
Script to create a profile for local testing and print a bearer token for it.
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from sqlmodel import select

from app.core.auth import create_jwt
from app.core.database import get_session_context, init_db
from app.models.profile import Profile
from projtrack_shared.schemas.common import Role


async def create_profile(email: str, name: str, role: Role, days: int) -> None:
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(Profile).where(Profile.email == email))
        profile = result.scalars().first()

        if profile is None:
            profile = Profile(email=email, name=name, role=role.value)
            session.add(profile)
            await session.flush()
            print(f"Created {role.value} profile: {email}")
        else:
            print(f"Profile {email} already exists ({profile.role}).")

        token = create_jwt(profile.id, profile.role, expires_delta=timedelta(days=days))

    print(f"Profile id: {profile.id}")
    print(f"Bearer token: {token}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local profile and print a token.")
    parser.add_argument("--email", required=True, help="Email address for the profile")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.STUDENT.value,
        help="Role of the profile",
    )
    parser.add_argument("--days", type=int, default=7, help="Token lifetime in days")

    args = parser.parse_args()

    try:
        asyncio.run(create_profile(args.email, args.name, Role(args.role), args.days))
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()
