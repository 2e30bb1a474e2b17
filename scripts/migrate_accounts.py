#!/usr/bin/env python3
"""
Run one account migration from the command line.

Accounts come from the environment (or .env):
  SOURCE_TOKEN / DEST_TOKEN     OAuth bearer tokens, or
  SOURCE_COOKIE / DEST_COOKIE   browser cookie strings containing token_v2, or
  SOURCE_CLIENT_ID, SOURCE_CLIENT_SECRET, SOURCE_USERNAME, SOURCE_PASSWORD
  (and the DEST_ equivalents)   script-app credentials for the password grant

Usage examples:
  python scripts/migrate_accounts.py --subreddits --posts
  python scripts/migrate_accounts.py --subreddits --delete-subreddits
  python scripts/migrate_accounts.py --posts-file saved.txt --delete-posts
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

# Ensure repo root on sys.path when running as a script (so 'migration' package is importable)
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from migration.reddit.auth import AccountPayload, resolve_account
from migration.reddit.client import RedditApiClient
from migration.reddit.config import load_options, setup_logging
from migration.reddit.errors import AuthError, RequestValidationError, VerificationError
from migration.reddit.models import DeleteFromSource, MigrationRequest, SelectionSet
from migration.reddit.options import AccountRole
from migration.reddit.orchestrator import MigrationOrchestrator

logger = logging.getLogger("migrate_accounts")


def read_ids_file(path: Optional[str]) -> List[str]:
    """One identifier per line; blank lines and # comments are skipped."""
    if not path:
        return []
    ids: List[str] = []
    for raw in Path(path).read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        ids.append(line)
    return ids


def account_from_env(prefix: str) -> AccountPayload:
    token = os.environ.get(f"{prefix}_TOKEN")
    if token:
        return AccountPayload(auth_method="oauth", access_token=token, username=os.environ.get(f"{prefix}_USERNAME"))
    if os.environ.get(f"{prefix}_PASSWORD"):
        return AccountPayload(
            auth_method="password",
            client_id=os.environ.get(f"{prefix}_CLIENT_ID"),
            client_secret=os.environ.get(f"{prefix}_CLIENT_SECRET"),
            username=os.environ.get(f"{prefix}_USERNAME"),
            password=os.environ.get(f"{prefix}_PASSWORD"),
        )
    return AccountPayload(auth_method="cookie", cookie=os.environ.get(f"{prefix}_COOKIE"))


def selection(enabled: bool, ids_file: Optional[str]) -> SelectionSet:
    ids = read_ids_file(ids_file)
    if ids:
        return SelectionSet.custom(ids)
    return SelectionSet.all() if enabled else SelectionSet.none()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Migrate subreddits and saved posts between Reddit accounts")
    p.add_argument("--subreddits", action="store_true", help="migrate every subscribed subreddit")
    p.add_argument("--posts", action="store_true", help="migrate every saved post/comment")
    p.add_argument("--subreddits-file", help="file with subreddit names or t5_ fullnames to migrate")
    p.add_argument("--posts-file", help="file with t3_/t1_ fullnames to migrate")
    p.add_argument("--delete-subreddits", action="store_true", help="unsubscribe the source account afterwards")
    p.add_argument("--delete-posts", action="store_true", help="unsave on the source account afterwards")
    p.add_argument("--log-level", default=None)
    return p


async def run(args: argparse.Namespace) -> int:
    options = load_options(dotenv=False)
    async with RedditApiClient(options) as client:
        try:
            source = await resolve_account(client, account_from_env("SOURCE"), AccountRole.SOURCE)
            destination = await resolve_account(client, account_from_env("DEST"), AccountRole.DESTINATION)
        except (AuthError, RequestValidationError, VerificationError) as e:
            logger.error("[migrate] %s", e)
            return 1

        request = MigrationRequest(
            source=source,
            destination=destination,
            subreddit_selection=selection(args.subreddits, args.subreddits_file),
            post_selection=selection(args.posts, args.posts_file),
            delete_from_source=DeleteFromSource(subreddits=args.delete_subreddits, posts=args.delete_posts),
        )
        result = await MigrationOrchestrator(client).migrate(request)

    print(json.dumps(result.to_response(), indent=2))
    if "auth" in result.errors or "verification" in result.errors:
        return 1
    return 0 if result.success else 2


def main() -> int:
    load_dotenv()
    args = build_parser().parse_args()
    setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
