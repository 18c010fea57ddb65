"""
Create an admin account from the command line.

Usage:
    python scripts/create_admin.py <username> <password> [--permanent] [--notes TEXT]
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from koban.core.database import db_manager
from koban.core.exceptions import KobanException
from koban.features.admin.schemas import AdminCreate
from koban.features.admin.user_service import admin_user_service


async def create_admin(username: str, password: str, permanent: bool, notes: str | None) -> int:
    db_manager.init()
    await db_manager.create_all()

    try:
        async for db in db_manager.get_session():
            try:
                admin = await admin_user_service.create_admin(
                    db,
                    AdminCreate(
                        username=username,
                        password=password,
                        is_permanent=permanent,
                        notes=notes or "Created from the command line",
                    ),
                )
            except KobanException as e:
                print(f"❌ {e.message}")
                return 1

            print(f"✅ Created admin: {admin.username} (id: {admin.id})")
    finally:
        await db_manager.close()

    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--permanent", action="store_true", help="Cannot be disabled or deleted")
    parser.add_argument("--notes", default=None)
    args = parser.parse_args()

    sys.exit(asyncio.run(create_admin(args.username, args.password, args.permanent, args.notes)))


if __name__ == "__main__":
    main()
