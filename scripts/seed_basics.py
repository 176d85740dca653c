"""Create the tables, default categories and a first admin team."""

import argparse
import asyncio

from sqlalchemy import select

import hctf.database as database
from hctf.models.category import Category
from hctf.models.team import Team
from hctf.security import generate_password, hash_password
from hctf.utils import local_now

DEFAULT_CATEGORIES = ("Web", "Pwn", "Reverse", "Crypto", "Misc")


async def main(admin_name: str, admin_email: str) -> None:
    """Create base tables, a few default categories and the first admin team."""

    await database.init_models()
    async with database.SessionLocal() as session:
        existing = set((await session.execute(select(Category.category_name))).scalars().all())
        for name in DEFAULT_CATEGORIES:
            if name not in existing:
                session.add(Category(category_name=name))

        password = None
        admin = (await session.execute(select(Team).where(Team.email == admin_email))).scalar_one_or_none()
        if admin is None:
            password = generate_password()
            now = local_now()
            session.add(
                Team(
                    team_name=admin_name,
                    email=admin_email,
                    password=hash_password(password),
                    admin=True,
                    sign_up_time=now,
                    last_login_time=now,
                )
            )
        await session.commit()

    print("Seeded default categories.")
    if password is not None:
        print(f"Created admin team {admin_name} <{admin_email}> with password: {password}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--admin-name", default="admin")
    parser.add_argument("--admin-email", default="admin@hctf.local")
    args = parser.parse_args()
    asyncio.run(main(args.admin_name, args.admin_email))
