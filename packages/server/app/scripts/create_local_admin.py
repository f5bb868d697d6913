"""
Script to create an organization and an administrator with a password for local testing.
"""

import argparse
import asyncio

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg


async def create_admin(email: str, password: str, org_name: str, org_slug: str, superuser: bool):
    async with get_session_context() as session:
        # 1. Ensure the organization exists
        result = await session.execute(select(Organization).where(Organization.slug == org_slug))
        org = result.scalar_one_or_none()

        if not org:
            org = Organization(name=org_name, slug=org_slug)
            session.add(org)
            await session.flush()
            print(f"Created organization {org_slug}.")

        # 2. Check if user already exists
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                email=email,
                login=email.split("@")[0],
                password_hash=hash_password(password),
                is_superuser=superuser,
                active_org_id=org.id,
            )
            session.add(user)
            await session.flush()
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        # 3. Ensure membership exists
        result = await session.execute(
            select(UserOrg).where(UserOrg.user_id == user.id, UserOrg.org_id == org.id)
        )
        if not result.scalar_one_or_none():
            session.add(UserOrg(user_id=user.id, org_id=org.id, role="administrator"))
            print(f"Added {email} as administrator to {org_slug}.")

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--org-name", default="Main Org.", help="Organization display name")
    parser.add_argument("--org-slug", default="main", help="Organization slug")
    parser.add_argument("--superuser", action="store_true", help="Grant superuser rights")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.org_name, args.org_slug, args.superuser))
