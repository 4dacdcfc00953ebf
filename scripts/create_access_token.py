"""Script to issue a bearer access token for a user."""

import argparse
import asyncio
import sys
from typing import Optional

sys.path.insert(0, ".")

from avatarlab.auth.security import create_access_token
from avatarlab.db.session import async_session_maker, init_db


async def main(user_id: str, name: str, expires_in_days: Optional[int]):
    """Issue an access token."""
    print("Initializing database...")
    await init_db()

    print(f"Creating access token for {user_id}...")
    async with async_session_maker() as db:
        access_token, full_token = await create_access_token(
            db,
            user_id=user_id,
            name=name,
            expires_in_days=expires_in_days,
        )
        await db.commit()

        print("\n" + "=" * 60)
        print("ACCESS TOKEN CREATED SUCCESSFULLY")
        print("=" * 60)
        print(f"\nToken:    {full_token}")
        print(f"Token ID: {access_token.id}")
        print(f"Prefix:   {access_token.token_prefix}")
        print(f"User:     {access_token.user_id}")
        print("\nSAVE THIS TOKEN NOW - IT WILL NOT BE SHOWN AGAIN!")
        print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="User the token authenticates as")
    parser.add_argument("--name", default="CLI token", help="Label shown in the admin API")
    parser.add_argument("--expires-in-days", type=int, default=None)
    args = parser.parse_args()

    asyncio.run(main(args.user_id, args.name, args.expires_in_days))
