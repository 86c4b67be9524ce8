"""Connect, optionally add a user, then look users up by name.

    python -m app.scripts.getting_started --name sai
    python -m app.scripts.getting_started --name sai --create --email sai1234@gmail.com --password 1234
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from app.core.logging import setup_logging
from app.db import mongo, repos
from app.models.user import BasicUser

logger = setup_logging()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MongoDB getting-started walkthrough")
    parser.add_argument("--name", help="Find users with this name (all users when omitted)")
    parser.add_argument("--create", action="store_true", help="Save a user before querying")
    parser.add_argument("--email", help="Email of the user to create")
    parser.add_argument("--password", help="Password of the user to create")
    return parser


async def run(args: argparse.Namespace) -> List[dict]:
    try:
        await mongo.connect()
        await repos.init_models()
        if args.create:
            user = BasicUser(name=args.name, email=args.email)
            user.set_password(args.password)
            await user.insert()
            logger.info("Created user {}", user.id)

        filter = {"name": args.name} if args.name else {}
        found = await BasicUser.find(filter).to_list()
        users = [u.model_dump(mode="json", exclude={"password"}) for u in found]
        logger.info("Found {} user(s): {}", len(users), users)
        return users
    finally:
        await mongo.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.create and not args.email:
        logger.error("--create needs --email")
        return 2
    try:
        asyncio.run(run(args))
    except Exception as e:
        logger.error("Getting-started run failed: {}", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
